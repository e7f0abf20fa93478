"""
API Service - Business logic layer between the API and the registry.

The service:
1. Translates API requests to registry calls
2. Turns channel messages into engine actions
3. Gates the management surface behind the admin secret
4. Merges live and stored sessions for the admin listing

This layer is framework-agnostic; the FastAPI app only adds transport.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional, Union
import logging

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from ..access import Role, check_admin_secret, resolve_role
from ..config import Settings
from ..engine_core.action import Action, ActionResult
from ..formats.maps import MapCatalog, MapDefinition
from ..formats.sequences import list_formats, parse_steps
from ..session.manager import SessionRegistry
from ..store.repository import MatchStore
from .schemas import (
    ClientMessage,
    ClientMessageType,
    CreateSessionRequest,
    CreateSessionResponse,
    ErrorCode,
    ErrorResponse,
    FormatInfo,
    HistoryPage,
    MapInfo,
    TokensInfo,
)

logger = logging.getLogger(__name__)


def _map_info(definition: MapDefinition) -> MapInfo:
    return MapInfo(name=definition.name, custom_image=definition.custom_image)


@dataclass
class VetoService:
    """
    Main API service.

    Usage:
        service = VetoService.from_settings(Settings.from_env())
        service.startup()

        created = service.create_session(request)
        role, snapshot = service.join(created.session_id, token)
        service.handle_message(created.session_id, token, {"type": "ready"})
    """
    registry: SessionRegistry
    settings: Settings = field(default_factory=Settings)

    @classmethod
    def from_settings(cls, settings: Settings) -> VetoService:
        store = MatchStore(settings.database_url)
        catalog = MapCatalog(settings.maps_file)
        registry = SessionRegistry(
            store=store,
            catalog=catalog,
            default_timer=settings.default_timer,
        )
        return cls(registry=registry, settings=settings)

    @property
    def store(self) -> Optional[MatchStore]:
        return self.registry.store

    @property
    def catalog(self) -> MapCatalog:
        return self.registry.catalog

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def startup(self):
        """Create tables, read the catalog and restore stored sessions."""
        if self.store is not None:
            self.store.init()
        self.catalog.load()
        self.registry.load_from_store()

    def shutdown(self):
        self.registry.timers.cancel_all()
        self.registry.close()
        if self.store is not None:
            self.store.close()

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, request: CreateSessionRequest) -> CreateSessionResponse:
        """
        Create a new veto session.

        Raises ValueError for an unknown format or a malformed custom sequence.
        """
        custom_sequence = None
        if request.custom_sequence:
            custom_sequence = parse_steps(
                [step.model_dump(exclude_none=True) for step in request.custom_sequence]
            )

        session = self.registry.create_session(
            format_id=request.format,
            team_a=request.team_a,
            team_b=request.team_b,
            team_a_logo=request.team_a_logo,
            team_b_logo=request.team_b_logo,
            custom_map_names=request.custom_map_names,
            custom_sequence=custom_sequence,
            use_timer=request.use_timer,
            timer_duration=request.timer_duration,
            use_coin_flip=request.use_coin_flip,
        )
        return CreateSessionResponse(
            session_id=session.session_id,
            tokens=TokensInfo(**session.tokens.to_dict()),
            snapshot=self.registry.public_snapshot(session),
        )

    def get_snapshot(self, session_id: str) -> Union[dict[str, Any], ErrorResponse]:
        session = self.registry.get_session(session_id)
        if session is None:
            return ErrorResponse(
                error=f"Session {session_id} not found",
                error_code=ErrorCode.SESSION_NOT_FOUND,
            )
        return self.registry.public_snapshot(session)

    def join(self, session_id: str, token: Optional[str]) -> Optional[tuple[Role, dict[str, Any]]]:
        """Role and current snapshot for a new subscriber, or None."""
        session = self.registry.get_session(session_id)
        if session is None:
            return None
        return resolve_role(session, token), self.registry.public_snapshot(session)

    def handle_message(
        self,
        session_id: str,
        token: Optional[str],
        message: dict[str, Any],
    ) -> ActionResult:
        """
        Apply one channel message.

        A token inside the message overrides the connection's token. Admin
        messages may carry the process-wide secret instead of the session's
        admin token.
        """
        try:
            parsed = ClientMessage.model_validate(message)
        except ValidationError:
            return ActionResult.failure("Malformed message", error_code=ErrorCode.VALIDATION_ERROR.value)

        token = parsed.token or token
        kind = parsed.type

        if kind is ClientMessageType.READY:
            action = Action.ready(token)
        elif kind is ClientMessageType.COIN_CALL:
            action = Action.coin_call(token, parsed.call or "")
        elif kind is ClientMessageType.COIN_DECISION:
            action = Action.coin_decision(token, parsed.decision or "")
        elif kind is ClientMessageType.ACTION:
            action = Action.step(token, parsed.data)
        elif kind in (ClientMessageType.ADMIN_RESET, ClientMessageType.ADMIN_UNDO):
            elevated = check_admin_secret(parsed.secret, self.settings.admin_secret)
            factory = Action.reset if kind is ClientMessageType.ADMIN_RESET else Action.undo
            action = factory(token, elevated=elevated)
        else:
            return ActionResult.failure(f"Unsupported message: {kind.value}")

        return self.registry.apply(session_id, action)

    # =========================================================================
    # Public views
    # =========================================================================

    def list_maps(self) -> list[MapInfo]:
        return [_map_info(m) for m in self.catalog.maps()]

    def list_formats(self) -> list[FormatInfo]:
        return [FormatInfo(**f) for f in list_formats()]

    def history(self, page: int = 1, limit: int = 10) -> HistoryPage:
        """Finished matches, newest first, without tokens."""
        if self.store is None:
            return HistoryPage(current_page=max(page, 1))
        return HistoryPage.model_validate(
            self.registry.read(self.store.paginate_finished, page, limit)
        )

    # =========================================================================
    # Management
    # =========================================================================

    def is_admin(self, secret: Optional[str]) -> bool:
        return check_admin_secret(secret, self.settings.admin_secret)

    def stored_matches(self) -> list[dict[str, Any]]:
        """Stored snapshots with tokens. Blocks; keep it off the event loop."""
        if self.store is None:
            return []
        try:
            return self.registry.read(self.store.list_all)
        except SQLAlchemyError:
            logger.exception("Failed to read stored matches")
            return []

    def admin_history(self, stored: Optional[list[dict[str, Any]]] = None) -> list[dict[str, Any]]:
        """
        Every session with its tokens, newest first.

        Live sessions win over their stored copy.
        """
        if stored is None:
            stored = self.stored_matches()
        merged = {snapshot["id"]: snapshot for snapshot in stored}
        for session in self.registry.list_sessions():
            merged[session.session_id] = session.to_snapshot(include_tokens=True)
        return sorted(merged.values(), key=lambda s: s["date"], reverse=True)

    def admin_delete(self, session_id: str) -> bool:
        logger.info("Admin deleting session %s", session_id)
        return self.registry.delete_session(session_id)

    def admin_reset_all(self):
        logger.warning("Admin resetting all match history")
        self.registry.clear_all()

    def admin_update_catalog(self, raw_maps: Any) -> Union[list[MapInfo], ErrorResponse]:
        """
        Replace the catalog.

        Entries may be plain names or {"name", "customImage"} objects. On any
        malformed entry the catalog is left unchanged.
        """
        if not isinstance(raw_maps, list):
            return ErrorResponse(
                error="maps must be a list",
                error_code=ErrorCode.INVALID_CATALOG,
            )

        definitions = []
        for item in raw_maps:
            if isinstance(item, str):
                item = {"name": item}
            try:
                info = MapInfo.model_validate(item)
            except ValidationError:
                return ErrorResponse(
                    error="Invalid map entry",
                    error_code=ErrorCode.INVALID_CATALOG,
                    details={"entry": item if isinstance(item, (dict, str)) else repr(item)},
                )
            definitions.append(MapDefinition(info.name, info.custom_image))

        self.catalog.replace(definitions)
        return self.list_maps()
