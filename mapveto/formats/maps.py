"""
Map Catalog - The maps new sessions are built from.

The catalog:
- Is process-wide and editable by the administrator
- Is stored as a JSON file next to the server (optional)
- Is only read when a session is created; sessions keep their own copy
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any
import json
import logging

from ..engine_core.state import MapEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MapDefinition:
    """A map as listed in the catalog."""
    name: str
    custom_image: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "customImage": self.custom_image}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MapDefinition:
        return cls(name=data["name"], custom_image=data.get("customImage"))


DEFAULT_MAPS: tuple[MapDefinition, ...] = tuple(
    MapDefinition(name) for name in
    ("Dust2", "Inferno", "Mirage", "Overpass", "Nuke", "Anubis", "Ancient")
)

WINGMAN_MAPS: tuple[MapDefinition, ...] = tuple(
    MapDefinition(name) for name in
    ("Vertigo", "Nuke", "Inferno", "Overpass", "Rooftop")
)


class MapCatalog:
    """
    Mutable list of active maps.

    Usage:
        catalog = MapCatalog(path="maps.json")
        catalog.load()

        pool = catalog.build_pool("bo3")
        catalog.replace([MapDefinition("Train")])
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._maps: list[MapDefinition] = list(DEFAULT_MAPS)

    def load(self):
        """
        Read the catalog file, or write the defaults if there is none.

        An unreadable file is logged and the current maps are kept.
        """
        if self.path is None:
            return
        if not self.path.exists():
            self.save()
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            self._maps = [MapDefinition.from_dict(m) for m in raw]
            logger.info("Loaded %d maps from %s", len(self._maps), self.path)
        except (OSError, ValueError, KeyError, TypeError):
            logger.exception("Could not read map catalog %s, keeping defaults", self.path)

    def save(self):
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump([m.to_dict() for m in self._maps], f, indent=2)
        except OSError:
            logger.exception("Could not write map catalog %s", self.path)

    def maps(self) -> list[MapDefinition]:
        return list(self._maps)

    def replace(self, maps: list[MapDefinition]):
        """Swap the whole catalog and save it."""
        self._maps = list(maps)
        self.save()
        logger.info("Map catalog updated: %s", ", ".join(m.name for m in self._maps))

    def find(self, name: str) -> MapDefinition | None:
        for definition in self._maps:
            if definition.name == name:
                return definition
        return None

    def build_pool(
        self,
        format_id: str,
        custom_map_names: list[str] | None = None,
    ) -> list[MapEntry]:
        """
        Fresh map pool for a new session.

        Wingman formats use the wingman maps; `custom` uses the caller's
        subset when given (artwork looked up in the catalog); everything else
        copies the active catalog.
        """
        if format_id.startswith("wingman"):
            definitions = list(WINGMAN_MAPS)
        elif format_id == "custom" and custom_map_names:
            definitions = []
            for name in custom_map_names:
                known = self.find(name)
                definitions.append(MapDefinition(name, known.custom_image if known else None))
        else:
            definitions = self.maps()

        pool: list[MapEntry] = []
        seen: set[str] = set()
        for definition in definitions:
            # Names are unique within a session
            if definition.name in seen:
                continue
            seen.add(definition.name)
            pool.append(MapEntry(name=definition.name, custom_image=definition.custom_image))
        return pool
