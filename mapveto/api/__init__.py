"""
API Module - Client interface of the veto server.

Clients:
1. Create a session and hand out the team tokens
2. Subscribe to the session channel with their token
3. Send ready, coin flip and veto messages
4. Receive the full public state after every accepted change

Administrators use the secret-gated HTTP endpoints for history, deletion and
the map catalog.
"""

from .schemas import (
    # Requests
    CreateSessionRequest,
    SecretRequest,
    DeleteSessionRequest,
    CatalogUpdateRequest,
    ClientMessage,
    # Responses
    CreateSessionResponse,
    ErrorResponse,
    HistoryPage,
    HealthResponse,
    # Shared
    MapInfo,
    FormatInfo,
    TokensInfo,
    # Enums
    ErrorCode,
    ClientMessageType,
)
from .hub import ConnectionHub
from .service import VetoService
from .app import create_app

__all__ = [
    # Requests
    "CreateSessionRequest",
    "SecretRequest",
    "DeleteSessionRequest",
    "CatalogUpdateRequest",
    "ClientMessage",
    # Responses
    "CreateSessionResponse",
    "ErrorResponse",
    "HistoryPage",
    "HealthResponse",
    # Shared
    "MapInfo",
    "FormatInfo",
    "TokensInfo",
    # Enums
    "ErrorCode",
    "ClientMessageType",
    # Service
    "ConnectionHub",
    "VetoService",
    "create_app",
]
