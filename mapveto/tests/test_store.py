"""
Tests for match persistence.
"""

from ..engine_core.state import MapStatus, Phase, Side, Team
from ..store.repository import MatchStore


class TestRoundTrip:
    def test_finished_session_survives_reload(self, finished_bo1, store):
        loaded = store.load(finished_bo1.session_id)

        assert loaded.to_snapshot(include_tokens=True) == finished_bo1.to_snapshot(include_tokens=True)
        assert loaded.phase == Phase.FINISHED
        assert loaded.get_map("Ancient").side == Side.CT

    def test_history_records_reload_for_undo(self, registry, store, play):
        session = registry.create_session("bo3")
        play(session, ("A", "Dust2"), ("B", "Inferno"), ("A", "Mirage"), ("B", "CT"))

        loaded = store.load(session.session_id)

        assert loaded.history[-1].amended
        assert loaded.history[-1].previous_log == "[PICK] Team A picked Mirage"
        assert loaded.history[2].prev_status == MapStatus.AVAILABLE
        assert loaded.get_map("Mirage").picked_by == Team.A

    def test_missing_session(self, store):
        assert store.load("nope") is None
        assert not store.delete("nope")

    def test_list_all_includes_tokens(self, registry, store):
        session = registry.create_session("bo1")

        listed = store.list_all()

        assert listed[0]["keys"] == session.tokens.to_dict()


class TestPagination:
    def make_finished(self, registry, play, date):
        session = registry.create_session("faceit_bo1")
        session.date = date
        play(
            session,
            ("A", "Dust2"), ("B", "Inferno"), ("A", "Mirage"),
            ("B", "Overpass"), ("A", "Nuke"), ("B", "Anubis"),
        )
        return session

    def test_only_finished_matches_newest_first(self, registry, store, play):
        older = self.make_finished(registry, play, "2024-01-01T10:00:00+00:00")
        newer = self.make_finished(registry, play, "2024-02-01T10:00:00+00:00")
        registry.create_session("bo1")

        page = store.paginate_finished(page=1, limit=10)

        assert page["totalMatches"] == 2
        assert page["totalPages"] == 1
        assert page["currentPage"] == 1
        assert [m["id"] for m in page["matches"]] == [newer.session_id, older.session_id]
        assert all("keys" not in m for m in page["matches"])

    def test_page_boundaries(self, registry, store, play):
        for month in range(1, 6):
            self.make_finished(registry, play, f"2024-{month:02d}-01T00:00:00+00:00")

        first = store.paginate_finished(page=1, limit=2)
        last = store.paginate_finished(page=3, limit=2)
        beyond = store.paginate_finished(page=4, limit=2)

        assert first["totalPages"] == 3
        assert len(first["matches"]) == 2
        assert first["matches"][0]["date"].startswith("2024-05")
        assert len(last["matches"]) == 1
        assert last["matches"][0]["date"].startswith("2024-01")
        assert beyond["matches"] == []

    def test_empty_store(self, store):
        page = store.paginate_finished()

        assert page == {"matches": [], "totalMatches": 0, "totalPages": 0, "currentPage": 1}


def test_file_backed_store(tmp_path, registry):
    path = tmp_path / "history.db"
    file_store = MatchStore(f"sqlite:///{path}")
    file_store.init()
    session = registry.create_session("bo1")

    file_store.save(session)
    file_store.close()

    reopened = MatchStore(f"sqlite:///{path}")
    assert reopened.load(session.session_id).tokens == session.tokens
    reopened.close()
