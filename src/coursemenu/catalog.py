"""
Read-only entity catalog.

Entities (courses) are loaded once from a JSON list and kept in file order;
that order is the tie-break order of the suggestion engine.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import CATALOG_PATH
from .errors import CatalogError
from .observability import get_logger

logger = get_logger(__name__)


class Entity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    source_url: str = Field(..., min_length=1)
    semester: str = ""
    description: str = ""


class EntityCatalog:
    """Ordered, immutable collection of entities with unique ids and names."""

    def __init__(self, entities: Iterable[Entity]):
        ordered = tuple(entities)
        by_id: dict[str, Entity] = {}
        by_name: dict[str, Entity] = {}
        for entity in ordered:
            if entity.id in by_id:
                raise CatalogError(f"duplicate entity id: {entity.id}")
            if entity.name in by_name:
                raise CatalogError(f"duplicate entity name: {entity.name}")
            by_id[entity.id] = entity
            by_name[entity.name] = entity
        self._entities = ordered
        self._by_id = by_id
        self._by_name = by_name

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "EntityCatalog":
        try:
            return cls(Entity.model_validate(record) for record in records)
        except ValidationError as exc:
            raise CatalogError(f"invalid catalog entry: {exc}") from exc

    @classmethod
    def from_json(cls, path: str | Path) -> "EntityCatalog":
        catalog_path = Path(path)
        try:
            raw = json.loads(catalog_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CatalogError(f"cannot read catalog {catalog_path}: {exc}") from exc
        if not isinstance(raw, list):
            raise CatalogError(f"catalog {catalog_path} must contain a JSON list")
        catalog = cls.from_records(raw)
        logger.info("catalog_loaded", path=str(catalog_path), entities=len(catalog))
        return catalog

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(entity.name for entity in self._entities)

    def get(self, entity_id: str) -> Entity | None:
        return self._by_id.get(entity_id)

    def by_name(self, name: str) -> Entity | None:
        return self._by_name.get(name)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name


def load_catalog(path: str | Path | None = None) -> EntityCatalog:
    return EntityCatalog.from_json(path or CATALOG_PATH)
