"""Match store: saves and loads veto session snapshots.

List-shaped fields are stored as JSON text and booleans as integers.
Saving a session and loading it back yields an identical snapshot.
"""
import json
import logging
import math
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.engine import Engine

from ..engine_core.state import VetoSession
from .database import Base, build_engine, build_sessionmaker
from .models import MatchRecord

logger = logging.getLogger(__name__)


def _to_record(snap: dict[str, Any]) -> MatchRecord:
    return MatchRecord(
        id=snap["id"],
        date=snap["date"],
        team_a=snap["teamA"],
        team_b=snap["teamB"],
        team_a_logo=snap["teamALogo"],
        team_b_logo=snap["teamBLogo"],
        format=snap["format"],
        template=json.dumps(snap["template"]),
        sequence=json.dumps(snap["sequence"]),
        step=snap["step"],
        maps=json.dumps(snap["maps"]),
        logs=json.dumps(snap["logs"]),
        history=json.dumps(snap["history"]),
        finished=1 if snap["finished"] else 0,
        last_picked_map=snap["lastPickedMap"],
        played_maps=json.dumps(snap["playedMaps"]),
        use_timer=1 if snap["useTimer"] else 0,
        ready=json.dumps(snap["ready"]),
        timer_ends_at=snap["timerEndsAt"],
        timer_duration=snap["timerDuration"],
        use_coin_flip=1 if snap["useCoinFlip"] else 0,
        coin_flip=json.dumps(snap["coinFlip"]) if snap["coinFlip"] is not None else None,
        keys_data=json.dumps(snap["keys"]),
    )


def _to_snapshot(record: MatchRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "date": record.date,
        "teamA": record.team_a,
        "teamB": record.team_b,
        "teamALogo": record.team_a_logo,
        "teamBLogo": record.team_b_logo,
        "format": record.format,
        "template": json.loads(record.template or "[]"),
        "sequence": json.loads(record.sequence),
        "step": record.step,
        "maps": json.loads(record.maps),
        "logs": json.loads(record.logs),
        "history": json.loads(record.history or "[]"),
        "finished": record.finished == 1,
        "lastPickedMap": record.last_picked_map,
        "playedMaps": json.loads(record.played_maps),
        "useTimer": record.use_timer == 1,
        "ready": json.loads(record.ready),
        "timerEndsAt": record.timer_ends_at,
        "timerDuration": record.timer_duration or 60,
        "useCoinFlip": record.use_coin_flip == 1,
        "coinFlip": json.loads(record.coin_flip) if record.coin_flip else None,
        "keys": json.loads(record.keys_data),
    }


def _load(record: MatchRecord) -> VetoSession:
    return VetoSession.from_snapshot(_to_snapshot(record))


class MatchStore:
    """Row-per-session persistence for veto sessions."""

    def __init__(self, url: str = "sqlite:///./match_history.db", engine: Optional[Engine] = None):
        self.engine = engine or build_engine(url)
        self._sessionmaker = build_sessionmaker(self.engine)

    def init(self) -> None:
        """Create the table if it does not exist."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Match store ready (%s)", self.engine.url)

    def close(self) -> None:
        self.engine.dispose()

    def save(self, session: VetoSession) -> None:
        """Insert or replace the row for this session."""
        self.save_snapshot(session.to_snapshot(include_tokens=True))

    def save_snapshot(self, snap: dict[str, Any]) -> None:
        """Insert or replace a row from a snapshot that includes the tokens."""
        with self._sessionmaker() as db:
            db.merge(_to_record(snap))
            db.commit()

    def load(self, session_id: str) -> Optional[VetoSession]:
        with self._sessionmaker() as db:
            record = db.get(MatchRecord, session_id)
            if record is None:
                return None
            return _load(record)

    def load_all(self) -> list[VetoSession]:
        """Every stored session, newest first."""
        with self._sessionmaker() as db:
            records = db.query(MatchRecord).order_by(MatchRecord.date.desc()).all()
            return [_load(r) for r in records]

    def list_all(self) -> list[dict[str, Any]]:
        """Admin listing: every stored snapshot with its tokens, newest first."""
        with self._sessionmaker() as db:
            records = db.query(MatchRecord).order_by(MatchRecord.date.desc()).all()
            return [_load(r).to_snapshot(include_tokens=True) for r in records]

    def delete(self, session_id: str) -> bool:
        with self._sessionmaker() as db:
            deleted = db.query(MatchRecord).filter(MatchRecord.id == session_id).delete()
            db.commit()
            return deleted > 0

    def delete_all(self) -> int:
        with self._sessionmaker() as db:
            deleted = db.query(MatchRecord).delete()
            db.commit()
            logger.info("Deleted %d stored matches", deleted)
            return deleted

    def paginate_finished(self, page: int = 1, limit: int = 10) -> dict[str, Any]:
        """Public history: finished matches only, newest first, no tokens."""
        page = max(page, 1)
        limit = max(limit, 1)
        with self._sessionmaker() as db:
            query = db.query(MatchRecord).filter(MatchRecord.finished == 1)
            total = query.with_entities(func.count(MatchRecord.id)).scalar() or 0
            records = (
                query.order_by(MatchRecord.date.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return {
                "matches": [_load(r).to_snapshot() for r in records],
                "totalMatches": total,
                "totalPages": math.ceil(total / limit),
                "currentPage": page,
            }
