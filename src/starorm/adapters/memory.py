"""
StarORM Adapter Layer - In-Memory Store

💾 Dict-backed storage for development and tests:
``MemoryStore`` is a plugin that fills a model type's adapter table with
operations over plain Python dicts. One store can back several model
types; each type gets its own table (``options['table_name']`` or the
underscored type name).

Example:
    ```python
    store = MemoryStore()
    User.use(store)
    Post.use(store)

    User({"name": "alex"}).save()
    ```
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..utils import underscore
from .base import RelatedAdapter

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def _matches(row: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    for name, expected in query.items():
        if name in ("offset", "limit"):
            continue
        value = row.get(name)
        if isinstance(expected, Mapping) and "$in" in expected:
            if value not in expected["$in"]:
                return False
        elif value != expected:
            return False
    return True


class Page(list):
    """Rows of one ``find_all`` page with the pagination metadata"""

    def __init__(self, rows: Iterable[Row], total: int, offset: int, limit: Optional[int]):
        super().__init__(rows)
        self.total = total
        self.offset = offset
        self.limit = limit


class MemoryStore:
    """
    In-memory storage adapter plugin.

    Primary keys are auto-incremented integers assigned on the first save
    of a new record. Queries support equality, ``{"$in": [...]}``,
    ``offset`` and ``limit``.
    """

    def __init__(self):
        self.tables: Dict[str, Dict[Any, Row]] = defaultdict(dict)
        self._sequences: Dict[str, int] = defaultdict(int)

    def __call__(self, model_type) -> None:
        """Install the store on ``model_type`` (``Model.use`` entry point)."""
        model_type.adapter.update(
            find=self.find,
            find_all=self.find_all,
            count=self.count,
            remove_all=self.remove_all,
            save=self.save,
            remove=self.remove,
        )
        model_type.adapter.related = RelatedAdapter(
            find_all=self.related_find_all,
            find=self.related_find,
            count=self.related_count,
            has=self.related_has,
        )

        for through in list(model_type._join_types.values()):
            self._install_join(through)
        model_type.on("relation", self._on_relation)

        logger.debug("MemoryStore installed on %s", model_type.type)

    def _on_relation(self, spec) -> None:
        if spec.through is not None:
            self._install_join(spec.through)

    def _install_join(self, through) -> None:
        # Join types backed elsewhere keep their adapter
        if through.adapter.supports("save"):
            return
        self(through)

    # Storage helpers

    def table_name(self, model_type) -> str:
        return model_type.options.get("table_name") or underscore(model_type.type)

    def table(self, model_type) -> Dict[Any, Row]:
        return self.tables[self.table_name(model_type)]

    def select(self, model_type, query: Optional[Mapping[str, Any]]) -> List[Row]:
        query = query or {}
        return [dict(row) for row in self.table(model_type).values() if _matches(row, query)]

    def _page(self, rows: List[Row], query: Mapping[str, Any]) -> Page:
        offset = query.get("offset") or 0
        limit = query.get("limit")
        end = None if limit is None else offset + limit
        return Page(rows[offset:end], total=len(rows), offset=offset, limit=limit)

    def _next_key(self, model_type) -> int:
        name = self.table_name(model_type)
        self._sequences[name] += 1
        return self._sequences[name]

    # Model type operations

    def find(self, model_type, query: Mapping[str, Any], done: Callable) -> None:
        rows = self.select(model_type, query)
        done(None, rows[0] if rows else None)

    def find_all(self, model_type, query: Mapping[str, Any], done: Callable) -> None:
        done(None, self._page(self.select(model_type, query), query))

    def count(self, model_type, query: Mapping[str, Any], done: Callable) -> None:
        done(None, len(self.select(model_type, query)))

    def remove_all(self, model_type, query: Mapping[str, Any], done: Callable) -> None:
        table = self.table(model_type)
        for key in [key for key, row in table.items() if _matches(row, query)]:
            del table[key]
        done(None)

    # Instance operations

    def save(self, model, changed: Mapping[str, Any], done: Callable) -> None:
        model_type = type(model)
        table = self.table(model_type)
        primary_key = model_type.primary_key

        if primary_key is None:
            key = self._next_key(model_type)
            table[key] = model.to_dict()
            return done(None)

        key = model.primary
        generated: Dict[str, Any] = {}
        if not key:
            key = self._next_key(model_type)
            generated[primary_key] = key
        elif key not in table and isinstance(key, int):
            # keep the sequence ahead of caller-chosen keys
            name = self.table_name(model_type)
            self._sequences[name] = max(self._sequences[name], key)

        row = table.setdefault(key, {})
        row.update({name: model.get(name) for name in model_type.attributes})
        row.update(generated)
        logger.debug("Stored %s[%r]", self.table_name(model_type), key)
        done(None, generated or None)

    def remove(self, model, done: Callable) -> None:
        model_type = type(model)
        if model_type.primary_key:
            self.table(model_type).pop(model.primary, None)
        done(None)

    # Relation reads

    def _related_rows(self, model, spec, query: Optional[Mapping[str, Any]]) -> List[Row]:
        other = spec.another_model
        query = dict(query or {})

        if spec.is_many_to_many:
            links = self.select(spec.through, {spec.foreign_key: model.primary})
            ids = [link[spec.through_key] for link in links]
            query[other.primary_key] = {"$in": ids}
        elif spec.keys_on_owner:
            query[other.primary_key] = model.get(spec.foreign_key)
        else:
            query[spec.foreign_key] = model.primary

        return self.select(other, query)

    def related_find_all(self, model, spec, query, done: Callable) -> None:
        query = query or {}
        done(None, self._page(self._related_rows(model, spec, query), query))

    def related_find(self, model, spec, query, done: Callable) -> None:
        rows = self._related_rows(model, spec, query)
        done(None, rows[0] if rows else None)

    def related_count(self, model, spec, query, done: Callable) -> None:
        done(None, len(self._related_rows(model, spec, query)))

    def related_has(self, model, spec, candidate, done: Callable) -> None:
        other = spec.another_model
        key = candidate.primary if isinstance(candidate, other) else candidate
        rows = self._related_rows(model, spec, None)
        done(None, any(row.get(other.primary_key) == key for row in rows))


__all__ = ["MemoryStore", "Page"]
