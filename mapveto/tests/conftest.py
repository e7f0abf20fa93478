"""
Pytest fixtures for map veto tests.
"""

import pytest

from ..engine_core.action import Action
from ..engine_core.reducer import VetoReducer
from ..formats.maps import MapCatalog
from ..session.manager import SessionRegistry
from ..store.repository import MatchStore


NOW = 1_700_000_000.0


class FakeClock:
    """Settable clock in epoch seconds."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FirstChoice:
    """Stands in for random.Random: always the first option."""

    def choice(self, seq):
        return seq[0]


class ManualHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Records timers instead of running them; tests fire them by hand."""

    def __init__(self):
        self.handles: list[ManualHandle] = []

    def call_later(self, delay, callback):
        handle = ManualHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[ManualHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def fire_next(self):
        handle = self.pending[0]
        handle.fired = True
        handle.callback()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def reducer(clock) -> VetoReducer:
    """Deterministic reducer: fixed clock, always picks the first option."""
    return VetoReducer(rng=FirstChoice(), clock=clock)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store():
    """In-memory match store."""
    match_store = MatchStore("sqlite://")
    match_store.init()
    yield match_store
    match_store.close()


@pytest.fixture
def catalog() -> MapCatalog:
    return MapCatalog()


@pytest.fixture
def published() -> list:
    return []


@pytest.fixture
def registry(store, catalog, reducer, scheduler, published):
    session_registry = SessionRegistry(
        store=store,
        catalog=catalog,
        reducer=reducer,
        scheduler=scheduler,
        publisher=lambda session_id, snapshot: published.append((session_id, snapshot)),
    )
    yield session_registry
    session_registry.close()


@pytest.fixture
def play(registry):
    """Apply a series of team steps: play(session, ("A", "Dust2"), ("B", "CT"))."""

    def _play(session, *moves):
        tokens = {"A": session.tokens.a, "B": session.tokens.b, "admin": session.tokens.admin}
        results = []
        for who, data in moves:
            result = registry.apply(session.session_id, Action.step(tokens[who], data))
            assert result.success, result.error
            results.append(result)
        return results

    return _play


# bo1 over the default catalog; Ancient is left over
BO1_BANS = (
    ("A", "Dust2"), ("A", "Inferno"), ("B", "Mirage"),
    ("B", "Overpass"), ("B", "Nuke"), ("A", "Anubis"),
)


@pytest.fixture
def finished_bo1(registry, play):
    session = registry.create_session("bo1", team_a="Alpha", team_b="Bravo")
    play(session, *BO1_BANS, ("B", "CT"))
    assert session.finished
    return session
