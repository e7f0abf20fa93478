"""
Tests for the session registry.

Tests:
- Session creation and format validation
- Publishing and persistence after accepted actions
- Turn timer arming, re-arming and cancellation
- Restoring sessions from the store
"""

import asyncio
import logging
import time

import pytest
from sqlalchemy.exc import OperationalError

from ..api.hub import ConnectionHub
from ..engine_core.action import Action
from ..engine_core.state import MapStatus, Phase, SequenceStep, StepAction, Team
from ..formats.maps import MapDefinition
from ..formats.sequences import UnknownFormatError
from ..session.manager import SessionRegistry
from .conftest import BO1_BANS, ManualScheduler


class TestCreateSession:
    """Tests for session creation."""

    def test_defaults(self, registry):
        session = registry.create_session("bo3")

        assert len(session.session_id) == 12
        assert session.team_a == "Team A"
        assert session.team_b == "Team B"
        assert [m.name for m in session.maps] == [
            "Dust2", "Inferno", "Mirage", "Overpass", "Nuke", "Anubis", "Ancient",
        ]
        assert session.phase == Phase.IN_PROGRESS
        assert session.template == session.sequence
        assert len({session.tokens.admin, session.tokens.a, session.tokens.b}) == 3

    def test_unknown_format(self, registry):
        with pytest.raises(UnknownFormatError):
            registry.create_session("bo7")

    def test_custom_format_uses_given_maps_and_steps(self, registry, catalog):
        catalog.replace([MapDefinition("Train", "train.png"), *catalog.maps()])
        steps = [
            SequenceStep(Team.A, StepAction.BAN),
            SequenceStep(Team.B, StepAction.BAN),
            SequenceStep(Team.SYSTEM, StepAction.TIEBREAK),
        ]

        session = registry.create_session(
            "custom", custom_map_names=["Train", "Cache", "Dust2"], custom_sequence=steps,
        )

        assert [m.name for m in session.maps] == ["Train", "Cache", "Dust2"]
        assert session.get_map("Train").custom_image == "train.png"
        assert session.get_map("Cache").custom_image is None
        assert len(session.sequence) == 3

    def test_invalid_timer_duration_falls_back(self, registry):
        assert registry.create_session("bo1", use_timer=True, timer_duration="abc").timer_duration == 60
        assert registry.create_session("bo1", use_timer=True, timer_duration=-5).timer_duration == 60
        assert registry.create_session("bo1", use_timer=True, timer_duration="45").timer_duration == 45

    def test_created_session_is_persisted(self, registry, store):
        session = registry.create_session("bo1", team_a="Alpha")

        stored = store.load(session.session_id)

        assert stored is not None
        assert stored.team_a == "Alpha"
        assert stored.tokens == session.tokens

    def test_creation_is_not_published(self, registry, published):
        registry.create_session("bo1")

        assert published == []


class TestApply:
    """Tests for routing actions through the registry."""

    def test_unknown_session(self, registry):
        result = registry.apply("missing", Action.ready("x"))

        assert not result.success
        assert result.error_code == "SESSION_NOT_FOUND"

    def test_accepted_action_is_published_and_persisted(self, registry, store, published, play):
        session = registry.create_session("bo1")

        play(session, ("A", "Dust2"))

        assert len(published) == 1
        session_id, snapshot = published[0]
        assert session_id == session.session_id
        assert "keys" not in snapshot
        assert snapshot["maps"][0]["status"] == "banned"
        assert store.load(session.session_id).get_map("Dust2").status == MapStatus.BANNED

    def test_rejected_action_is_not_published(self, registry, published):
        session = registry.create_session("bo1")

        result = registry.apply(session.session_id, Action.step(session.tokens.b, "Dust2"))

        assert not result.success
        assert published == []

    def test_persistence_failure_keeps_memory_state(self, registry, store, published, monkeypatch, caplog):
        session = registry.create_session("bo1")

        def broken_save(_snapshot):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(store, "save_snapshot", broken_save)
        with caplog.at_level(logging.ERROR):
            result = registry.apply(session.session_id, Action.step(session.tokens.a, "Dust2"))

        assert result.success
        assert session.step == 1
        assert len(published) == 1
        assert "Failed to persist" in caplog.text


class TestTimers:
    """Tests for turn timer management."""

    def ready_both(self, registry, session):
        registry.apply(session.session_id, Action.ready(session.tokens.a))
        registry.apply(session.session_id, Action.ready(session.tokens.b))

    def test_both_ready_arms_timer(self, registry, scheduler):
        session = registry.create_session("bo1", use_timer=True, timer_duration=20)

        self.ready_both(registry, session)

        assert registry.timers.is_armed(session.session_id)
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay == pytest.approx(20.0)

    def test_action_rearms_timer(self, registry, scheduler, play):
        session = registry.create_session("bo1", use_timer=True, timer_duration=20)
        self.ready_both(registry, session)
        first = scheduler.pending[0]

        play(session, ("A", "Dust2"))

        assert first.cancelled
        assert len(scheduler.pending) == 1

    def test_expiry_auto_plays_and_rearms(self, registry, scheduler, published, clock):
        session = registry.create_session("bo1", use_timer=True, timer_duration=20)
        self.ready_both(registry, session)
        clock.advance(20)

        scheduler.fire_next()

        assert session.get_map("Dust2").status == MapStatus.BANNED
        assert session.logs[-1].startswith("[AUTO-BAN]")
        assert published[-1][1]["step"] == 1
        assert len(scheduler.pending) == 1

    def test_finish_cancels_timer(self, registry, scheduler, play):
        session = registry.create_session("bo1", use_timer=True)
        self.ready_both(registry, session)

        play(session, *BO1_BANS, ("B", "T"))

        assert session.finished
        assert not registry.timers.is_armed(session.session_id)
        assert scheduler.pending == []

    def test_stale_timer_does_not_fire(self, registry, scheduler, play):
        session = registry.create_session("bo1", use_timer=True)
        self.ready_both(registry, session)
        stale = scheduler.pending[0]
        play(session, ("A", "Dust2"))

        # A cancelled handle that still runs must not touch the session
        stale.callback()

        assert session.step == 1

    def test_delete_cancels_timer(self, registry, store):
        session = registry.create_session("bo1", use_timer=True)
        self.ready_both(registry, session)

        assert registry.delete_session(session.session_id)

        assert not registry.timers.is_armed(session.session_id)
        assert registry.get_session(session.session_id) is None
        assert store.load(session.session_id) is None


class TestLifecycle:
    """Tests for restore and bulk removal."""

    def test_load_from_store_rearms_pending_timer(self, registry, store, catalog, reducer, clock):
        session = registry.create_session("bo1", use_timer=True, timer_duration=30)
        registry.apply(session.session_id, Action.ready(session.tokens.a))
        registry.apply(session.session_id, Action.ready(session.tokens.b))
        clock.advance(10)

        scheduler = ManualScheduler()
        restored = SessionRegistry(store=store, catalog=catalog, reducer=reducer, scheduler=scheduler)

        assert restored.load_from_store() == 1
        assert restored.get_session(session.session_id).both_ready
        assert scheduler.pending[0].delay == pytest.approx(20.0)

    def test_clear_all(self, registry, store):
        registry.create_session("bo1")
        registry.create_session("bo3")

        registry.clear_all()

        assert registry.list_sessions() == []
        assert store.load_all() == []


class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, message):
        self.sent.append(message)


class TestStoreWorker:
    """Tests for store writes running off the event loop."""

    WRITE_DELAY = 0.3

    def slow_down(self, store, monkeypatch):
        original = store.save_snapshot

        def slow_save(snapshot):
            time.sleep(self.WRITE_DELAY)
            original(snapshot)

        monkeypatch.setattr(store, "save_snapshot", slow_save)

    def test_slow_write_does_not_delay_broadcast_or_other_sessions(self, registry, store, monkeypatch):
        first = registry.create_session("bo1")
        second = registry.create_session("bo1")
        hub = ConnectionHub()
        socket = RecordingSocket()
        hub.subscribe(first.session_id, socket)
        registry.publisher = hub.publish
        self.slow_down(store, monkeypatch)

        async def run():
            start = time.perf_counter()
            registry.apply(first.session_id, Action.step(first.tokens.a, "Dust2"))
            await asyncio.sleep(0)
            broadcast_after = time.perf_counter() - start
            registry.apply(second.session_id, Action.step(second.tokens.a, "Inferno"))
            return broadcast_after, time.perf_counter() - start

        broadcast_after, other_after = asyncio.run(run())

        assert socket.sent[0]["type"] == "update_state"
        assert socket.sent[0]["payload"]["step"] == 1
        assert broadcast_after < self.WRITE_DELAY / 2
        assert other_after < self.WRITE_DELAY / 2

        registry.close()
        assert store.load(first.session_id).get_map("Dust2").status == MapStatus.BANNED
        assert store.load(second.session_id).get_map("Inferno").status == MapStatus.BANNED

    def test_writes_keep_submission_order(self, registry, store, monkeypatch, play):
        session = registry.create_session("bo1")
        self.slow_down(store, monkeypatch)

        async def run():
            play(session, ("A", "Dust2"), ("A", "Inferno"))

        asyncio.run(run())
        registry.close()

        assert store.load(session.session_id).step == 2

    def test_background_write_failure_is_logged(self, registry, store, monkeypatch, caplog):
        session = registry.create_session("bo1")

        def broken_save(_snapshot):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(store, "save_snapshot", broken_save)

        async def run():
            result = registry.apply(session.session_id, Action.step(session.tokens.a, "Dust2"))
            # Wait for the worker to drain, then let the done-callback run
            await asyncio.to_thread(registry.read, lambda: None)
            await asyncio.sleep(0.05)
            return result

        with caplog.at_level(logging.ERROR):
            result = asyncio.run(run())

        assert result.success
        assert session.step == 1
        assert f"Failed to persist session {session.session_id}" in caplog.text

    def test_read_waits_for_pending_writes(self, registry, store, monkeypatch):
        session = registry.create_session("bo1")
        self.slow_down(store, monkeypatch)

        async def run():
            registry.apply(session.session_id, Action.step(session.tokens.a, "Dust2"))
            return await asyncio.to_thread(registry.read, store.load, session.session_id)

        loaded = asyncio.run(run())

        assert loaded.step == 1
