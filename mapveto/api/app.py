"""
FastAPI Application - HTTP and WebSocket surface of the veto server.

Endpoints:
    POST   /api/v1/sessions             Create a veto session
    GET    /api/v1/sessions/{id}        Get the public snapshot
    GET    /api/v1/formats              List formats
    WS     /api/v1/sessions/{id}/ws     Real-time channel (token in query)
    GET    /api/maps                    Active map catalog
    GET    /api/history                 Finished matches, paginated
    POST   /api/admin/history           All sessions with tokens
    POST   /api/admin/delete            Delete one session
    POST   /api/admin/reset             Delete every session
    POST   /api/admin/maps/get          Read the catalog
    POST   /api/admin/maps/update       Replace the catalog
    GET    /health                      Health check

Channel Flow:
    1. Connect with ?token=... (no token joins as a viewer)
    2. Server sends role_assigned, then update_state
    3. Client sends ready / coin_call / coin_decision / action / admin_*
    4. Every accepted change is broadcast as update_state to all subscribers;
       rejected messages produce no broadcast

All admin endpoints take the process-wide secret in the JSON body.
"""

from contextlib import asynccontextmanager
from typing import Annotated, Optional, Union
import json
import logging

from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import Settings
from .hub import ConnectionHub
from .schemas import (
    # Request models
    CreateSessionRequest,
    SecretRequest,
    DeleteSessionRequest,
    CatalogUpdateRequest,
    # Response models
    CreateSessionResponse,
    ErrorResponse,
    HistoryPage,
    SuccessResponse,
    CatalogResponse,
    FormatListResponse,
    HealthResponse,
    MapInfo,
    # Enums
    ErrorCode,
)
from .service import VetoService

logger = logging.getLogger(__name__)


def create_app(service: Optional[VetoService] = None, settings: Optional[Settings] = None):
    """
    Create the FastAPI application.

    Args:
        service: Optional VetoService instance (built from settings if not provided)
        settings: Optional Settings (read from the environment if not provided)

    Returns:
        FastAPI application instance
    """
    if service is None:
        settings = settings or Settings.from_env()
        service = VetoService.from_settings(settings)
    else:
        settings = settings or service.settings
    api_service = service

    hub = ConnectionHub()
    api_service.registry.publisher = hub.publish

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        api_service.startup()
        yield
        api_service.shutdown()

    app = FastAPI(
        title="Map Veto API",
        description="""
Map veto server for competitive matches.

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `INVALID_SECRET` | Admin secret missing or wrong |
| `INVALID_CATALOG` | Catalog update is not a list of maps |
| `VALIDATION_ERROR` | Unknown format or malformed sequence |
        """,
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.service = api_service
    app.state.hub = hub

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def forbidden() -> JSONResponse:
        return make_error_response(ErrorCode.INVALID_SECRET, "Invalid secret", status_code=403)

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=CreateSessionResponse,
        responses={400: {"model": ErrorResponse, "description": "Unknown format or bad sequence"}},
        tags=["Sessions"],
        summary="Create a new veto session",
    )
    async def create_session(body: CreateSessionRequest) -> Union[CreateSessionResponse, JSONResponse]:
        """
        Create a new veto session.

        The response carries the three capability tokens; they are never
        shown again outside the admin listing.
        """
        try:
            return api_service.create_session(body)
        except ValueError as e:
            return make_error_response(ErrorCode.VALIDATION_ERROR, str(e))

    @app.get(
        "/api/v1/sessions/{session_id}",
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get the public snapshot of a session",
    )
    async def get_session(session_id: str):
        response = api_service.get_snapshot(session_id)
        if isinstance(response, ErrorResponse):
            return make_error_response(response.error_code, response.error, status_code=404)
        return response

    @app.get(
        "/api/v1/formats",
        response_model=FormatListResponse,
        tags=["Sessions"],
        summary="List veto formats",
    )
    async def get_formats() -> FormatListResponse:
        return FormatListResponse(formats=api_service.list_formats())

    # =========================================================================
    # Public Endpoints
    # =========================================================================

    @app.get("/api/maps", response_model=list[MapInfo], tags=["Public"], summary="Active map catalog")
    async def get_maps() -> list[MapInfo]:
        return api_service.list_maps()

    @app.get("/api/history", response_model=HistoryPage, tags=["Public"], summary="Finished matches")
    def get_history(
        page: Annotated[int, Query(ge=1, description="1-based page number")] = 1,
        limit: Annotated[int, Query(ge=1, le=100, description="Matches per page")] = 10,
    ) -> HistoryPage:
        """Finished matches, newest first. Tokens are never included.

        Plain def: the store read runs in the framework threadpool.
        """
        return api_service.history(page, limit)

    # =========================================================================
    # Admin Endpoints
    # =========================================================================

    @app.post("/api/admin/history", responses={403: {"model": ErrorResponse}}, tags=["Admin"])
    async def admin_history(body: SecretRequest):
        """Every session, live or stored, including tokens."""
        if not api_service.is_admin(body.secret):
            return forbidden()
        # Read off the loop; merge with live sessions on it
        stored = await run_in_threadpool(api_service.stored_matches)
        return api_service.admin_history(stored)

    @app.post(
        "/api/admin/delete",
        response_model=SuccessResponse,
        responses={403: {"model": ErrorResponse}},
        tags=["Admin"],
    )
    async def admin_delete(body: DeleteSessionRequest):
        if not api_service.is_admin(body.secret):
            return forbidden()
        api_service.admin_delete(body.id)
        hub.drop_session(body.id)
        return SuccessResponse()

    @app.post(
        "/api/admin/reset",
        response_model=SuccessResponse,
        responses={403: {"model": ErrorResponse}},
        tags=["Admin"],
    )
    async def admin_reset(body: SecretRequest):
        """Delete every session, live and stored."""
        if not api_service.is_admin(body.secret):
            return forbidden()
        api_service.admin_reset_all()
        return SuccessResponse()

    @app.post(
        "/api/admin/maps/get",
        response_model=list[MapInfo],
        responses={403: {"model": ErrorResponse}},
        tags=["Admin"],
    )
    async def admin_get_maps(body: SecretRequest):
        if not api_service.is_admin(body.secret):
            return forbidden()
        return api_service.list_maps()

    @app.post(
        "/api/admin/maps/update",
        response_model=CatalogResponse,
        responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
        tags=["Admin"],
    )
    async def admin_update_maps(body: CatalogUpdateRequest):
        """Replace the catalog. Existing sessions keep their own maps."""
        if not api_service.is_admin(body.secret):
            return forbidden()
        response = api_service.admin_update_catalog(body.maps)
        if isinstance(response, ErrorResponse):
            return make_error_response(response.error_code, response.error, details=response.details)
        return CatalogResponse(maps=response)

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/sessions/{session_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, session_id: str, token: Optional[str] = None):
        """
        WebSocket for real-time updates.

        Messages from server:
        - role_assigned: admin / A / B / viewer
        - update_state: Public snapshot after every accepted change
        - error: Unknown session or unreadable message
        - pong: Keep-alive reply

        Messages from client:
        - ready, coin_call, coin_decision, action, admin_reset, admin_undo
        - ping: Keep-alive
        """
        await websocket.accept()

        joined = api_service.join(session_id, token)
        if joined is None:
            await websocket.send_json({
                "type": "error",
                "payload": {
                    "message": "Match not found",
                    "error_code": ErrorCode.SESSION_NOT_FOUND.value,
                },
            })
            await websocket.close(code=4404)
            return

        role, snapshot = joined
        hub.subscribe(session_id, websocket)
        logger.debug("Subscriber joined session %s as %s", session_id, role.value)

        try:
            await websocket.send_json({"type": "role_assigned", "payload": role.value})
            await websocket.send_json({"type": "update_state", "payload": snapshot})

            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await websocket.send_json({
                        "type": "error",
                        "payload": {"message": "Invalid JSON"},
                    })
                    continue

                if isinstance(message, dict) and message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
                    continue

                # Accepted changes reach this socket through the hub
                api_service.handle_message(session_id, token, message)

        except WebSocketDisconnect:
            pass
        finally:
            hub.unsubscribe(session_id, websocket)
            logger.debug("Subscriber left session %s", session_id)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(sessions=len(api_service.registry.list_sessions()))

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Map Veto API",
            "version": "1.0.0",
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn mapveto.api.app:app
app = create_app()
