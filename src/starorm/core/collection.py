"""
Collections of hydrated models with pagination metadata.
"""

from typing import Any, Iterable, Mapping, Optional

from ..config import get_settings


class Collection(list):
    """
    List of models returned by ``find_all``.

    ``total`` is the number of matching records in storage, which may be
    larger than ``len(collection)`` when the adapter paginates.
    """

    def __init__(self, items: Iterable[Any] = (), total: Optional[int] = None,
                 offset: int = 0, limit: Optional[int] = None):
        super().__init__(items)
        self.total = len(self) if total is None else total
        self.offset = offset
        self.limit = limit

    def first(self) -> Optional[Any]:
        return self[0] if self else None

    def last(self) -> Optional[Any]:
        return self[-1] if self else None

    def __repr__(self) -> str:
        return (f"Collection({list.__repr__(self)}, total={self.total}, "
                f"offset={self.offset}, limit={self.limit})")


def query_option(query: Any, name: str, default: Any = None) -> Any:
    if isinstance(query, Mapping) and query.get(name) is not None:
        return query[name]
    return default


def hydrate(model_type, rows: Optional[Iterable[Any]], query: Any) -> Collection:
    """
    Turn raw adapter rows into a :class:`Collection` of ``model_type``.

    Pagination metadata carried by ``rows`` wins over the query's
    ``offset``/``limit`` and the configured default limit.
    """
    if rows is None:
        rows = []
    models = [model_type.create(row) for row in rows]
    offset = getattr(rows, "offset", None)
    limit = getattr(rows, "limit", None)
    return Collection(
        models,
        total=getattr(rows, "total", None),
        offset=query_option(query, "offset", 0) if offset is None else offset,
        limit=query_option(query, "limit", get_settings().default_limit) if limit is None else limit,
    )


__all__ = ["Collection", "hydrate", "query_option"]
