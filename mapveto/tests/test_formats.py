"""
Tests for the sequence library and map catalog.
"""

import json

import pytest

from ..engine_core.state import MapStatus, StepAction, Team
from ..formats.maps import DEFAULT_MAPS, MapCatalog, MapDefinition
from ..formats.sequences import (
    SEQUENCES,
    UnknownFormatError,
    get_sequence,
    list_formats,
    parse_steps,
)


class TestSequences:
    @pytest.mark.parametrize("format_id", sorted(SEQUENCES))
    def test_tiebreak_only_as_last_system_step(self, format_id):
        steps = SEQUENCES[format_id]

        for index, step in enumerate(steps):
            if step.action == StepAction.TIEBREAK:
                assert step.team == Team.SYSTEM
                assert index == len(steps) - 1
            else:
                assert step.team in (Team.A, Team.B)

    def test_get_sequence_returns_copy(self):
        sequence = get_sequence("bo1")
        sequence.clear()

        assert len(get_sequence("bo1")) == 7

    def test_unknown_format(self):
        with pytest.raises(UnknownFormatError):
            get_sequence("bo2")

    def test_custom_without_steps(self):
        with pytest.raises(UnknownFormatError):
            get_sequence("custom")

    def test_parse_short_and_long_forms(self):
        steps = parse_steps([
            {"t": "A", "a": "ban"},
            {"team": "B", "action": "pick"},
            {"team": "System", "action": "knife"},
        ])

        assert [(s.team, s.action) for s in steps] == [
            (Team.A, StepAction.BAN),
            (Team.B, StepAction.PICK),
            (Team.SYSTEM, StepAction.TIEBREAK),
        ]

    @pytest.mark.parametrize("raw", [
        {"team": "C", "action": "ban"},
        {"team": "A", "action": "veto"},
        {"team": "A", "action": "tiebreak"},
        {"team": "System", "action": "ban"},
        "A ban",
    ])
    def test_parse_rejects(self, raw):
        with pytest.raises(ValueError):
            parse_steps([raw])

    def test_list_formats(self):
        formats = {f["id"]: f for f in list_formats()}

        assert formats["bo5"] == {"id": "bo5", "steps": 11, "tiebreak": True}
        assert formats["bo1"]["tiebreak"] is False
        assert "custom" in formats


class TestMapCatalog:
    def test_defaults(self):
        assert [m.name for m in MapCatalog().maps()] == [m.name for m in DEFAULT_MAPS]

    def test_load_writes_defaults_when_missing(self, tmp_path):
        path = tmp_path / "maps.json"

        MapCatalog(path).load()

        saved = json.loads(path.read_text())
        assert saved[0] == {"name": "Dust2", "customImage": None}

    def test_replace_persists(self, tmp_path):
        path = tmp_path / "maps.json"
        catalog = MapCatalog(path)
        catalog.replace([MapDefinition("Train", "train.png"), MapDefinition("Cache")])

        reloaded = MapCatalog(path)
        reloaded.load()

        assert reloaded.maps() == [MapDefinition("Train", "train.png"), MapDefinition("Cache")]

    def test_unreadable_file_keeps_defaults(self, tmp_path, caplog):
        path = tmp_path / "maps.json"
        path.write_text("{not json")
        catalog = MapCatalog(path)

        catalog.load()

        assert catalog.maps() == list(DEFAULT_MAPS)
        assert "Could not read map catalog" in caplog.text

    def test_wingman_pool(self):
        pool = MapCatalog().build_pool("wingman_bo3")

        assert [m.name for m in pool] == ["Vertigo", "Nuke", "Inferno", "Overpass", "Rooftop"]

    def test_pool_is_fresh_and_deduplicated(self):
        catalog = MapCatalog()
        catalog.replace([MapDefinition("Dust2"), MapDefinition("Dust2"), MapDefinition("Nuke")])

        pool = catalog.build_pool("bo1")
        pool[0].status = MapStatus.BANNED

        assert [m.name for m in pool] == ["Dust2", "Nuke"]
        assert catalog.build_pool("bo1")[0].status == MapStatus.AVAILABLE

    def test_custom_pool_without_names_uses_catalog(self):
        pool = MapCatalog().build_pool("custom")

        assert len(pool) == len(DEFAULT_MAPS)
