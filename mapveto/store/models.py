"""MatchRecord ORM model: one row per veto session."""
from sqlalchemy import BigInteger, Column, Integer, String, Text

from .database import Base


class MatchRecord(Base):
    __tablename__ = "match_history"

    id = Column(String(64), primary_key=True)
    date = Column(String(40), nullable=False, index=True)
    team_a = Column("teamA", String(255), nullable=False)
    team_b = Column("teamB", String(255), nullable=False)
    team_a_logo = Column("teamALogo", Text, nullable=True)
    team_b_logo = Column("teamBLogo", Text, nullable=True)
    format = Column(String(64), nullable=False)
    template = Column(Text, nullable=False, default="[]")
    sequence = Column(Text, nullable=False)
    step = Column(Integer, nullable=False, default=0)
    maps = Column(Text, nullable=False)
    logs = Column(Text, nullable=False)
    history = Column(Text, nullable=False, default="[]")
    finished = Column(Integer, nullable=False, default=0, index=True)
    last_picked_map = Column("lastPickedMap", String(255), nullable=True)
    played_maps = Column("playedMaps", Text, nullable=False)
    use_timer = Column("useTimer", Integer, nullable=False, default=0)
    ready = Column(Text, nullable=False)
    timer_ends_at = Column("timerEndsAt", BigInteger, nullable=True)
    timer_duration = Column("timerDuration", Integer, nullable=False, default=60)
    use_coin_flip = Column("useCoinFlip", Integer, nullable=False, default=0)
    coin_flip = Column("coinFlip", Text, nullable=True)
    keys_data = Column(Text, nullable=False)
