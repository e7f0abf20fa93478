"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between clients and the veto server.
Field names are camelCase on the wire and snake_case in Python.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist
- INVALID_SECRET: Admin secret missing or wrong
- INVALID_CATALOG: Catalog update payload is not a list of maps
- VALIDATION_ERROR: Request is malformed (unknown format, bad sequence)
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """camelCase on the wire, either spelling accepted on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INVALID_SECRET = "INVALID_SECRET"
    INVALID_CATALOG = "INVALID_CATALOG"
    VALIDATION_ERROR = "VALIDATION_ERROR"


class ClientMessageType(str, Enum):
    """Messages a subscriber may send over the session channel."""
    PING = "ping"
    READY = "ready"
    COIN_CALL = "coin_call"
    COIN_DECISION = "coin_decision"
    ACTION = "action"
    ADMIN_RESET = "admin_reset"
    ADMIN_UNDO = "admin_undo"


# =============================================================================
# Shared Models
# =============================================================================

class MapInfo(WireModel):
    """A catalog map."""
    name: str = Field(..., min_length=1)
    custom_image: Optional[str] = None


class SequenceStepInfo(BaseModel):
    """One custom sequence step; the short t/a keys are accepted too."""
    team: Optional[str] = None
    action: Optional[str] = None
    t: Optional[str] = None
    a: Optional[str] = None


class TokensInfo(BaseModel):
    """Capability tokens of one session. Shown only to its creator."""
    admin: str
    A: str
    B: str


class FormatInfo(BaseModel):
    id: str
    steps: int
    tiebreak: bool


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(WireModel):
    """Request to create a new veto session."""
    team_a: Optional[str] = Field(None, description="Name of team A")
    team_b: Optional[str] = Field(None, description="Name of team B")
    team_a_logo: Optional[str] = None
    team_b_logo: Optional[str] = None
    format: str = Field("bo1", description="Format id, or 'custom'")
    custom_map_names: Optional[list[str]] = Field(
        None, description="Map subset for the custom format"
    )
    custom_sequence: Optional[list[SequenceStepInfo]] = Field(
        None, description="Step list for the custom format"
    )
    use_timer: bool = False
    timer_duration: Optional[Union[int, str]] = Field(
        None, description="Seconds per turn when the timer is enabled"
    )
    use_coin_flip: bool = False


class SecretRequest(BaseModel):
    """Body of every management endpoint."""
    secret: Optional[str] = None


class DeleteSessionRequest(SecretRequest):
    id: str


class CatalogUpdateRequest(SecretRequest):
    # Validated by hand so a non-list gets a 400 rather than a 422
    maps: Any = None


class ClientMessage(BaseModel):
    """A message received on a session channel."""
    type: ClientMessageType
    token: Optional[str] = None
    data: Any = None
    call: Optional[str] = None
    decision: Optional[str] = None
    secret: Optional[str] = None


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class CreateSessionResponse(WireModel):
    """Identifier and tokens of a newly created session."""
    session_id: str
    tokens: TokensInfo
    snapshot: dict[str, Any]
    api_version: str = "v1"


class HistoryPage(WireModel):
    """One page of finished matches."""
    matches: list[dict[str, Any]] = Field(default_factory=list)
    total_matches: int = 0
    total_pages: int = 0
    current_page: int = 1


class SuccessResponse(BaseModel):
    success: bool = True


class CatalogResponse(SuccessResponse):
    maps: list[MapInfo] = Field(default_factory=list)


class FormatListResponse(BaseModel):
    formats: list[FormatInfo] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    service: str = "mapveto"
    version: str = "0.1.0"
    sessions: int = 0
