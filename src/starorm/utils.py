import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple


def noop(*args, **kwargs) -> None:
    """Default callback for lifecycle methods called without one."""
    return None


def capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def pluralize(name: str) -> str:
    return name.lower() + "s"


def underscore(name: str) -> str:
    """`PostTag` -> `post_tag`"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def type_of(value: Any) -> str:
    """
    Return the type tag used by the ``type`` validator.

    Tags: ``null``, ``boolean``, ``number``, ``string``, ``date``,
    ``regexp``, ``array``, ``object`` and ``function``.
    """
    if value is None:
        return "null"
    # bool is a subclass of int
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (datetime, date, time)):
        return "date"
    if isinstance(value, re.Pattern):
        return "regexp"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    if callable(value):
        return "function"
    return "object"


def split_callback(query: Any, callback: Optional[Callable]) -> Tuple[Any, Optional[Callable]]:
    """Allow ``op(callback)`` as shorthand for ``op(None, callback)``."""
    if callback is None and callable(query) and not isinstance(query, Mapping):
        return None, query
    return query, callback


def as_list(items: Any) -> List[Any]:
    """Normalize a single item, a tuple or a list into a new list."""
    if items is None:
        return []
    if isinstance(items, (list, tuple)):
        return list(items)
    return [items]


_END = object()


def each_series(items: Iterable[Any], step: Callable[[Any, Callable], None],
                callback: Callable[[Optional[BaseException]], None]) -> None:
    """
    Run ``step(item, done)`` for every item, one at a time.

    The next item starts only after the previous ``done`` was called. The
    first error passed to ``done`` stops the sequence and is handed to
    ``callback``; otherwise ``callback(None)`` runs after the last item.
    Steps that complete synchronously are driven by a loop rather than by
    recursion, so long sequences do not grow the stack.
    """
    iterator = iter(items)
    looping = False
    resumed = False
    stopped = False

    def proceed(err: Optional[BaseException] = None) -> None:
        nonlocal looping, resumed, stopped
        if stopped:
            return
        if err is not None:
            stopped = True
            callback(err)
            return
        if looping:
            resumed = True
            return

        looping = True
        try:
            while True:
                item = next(iterator, _END)
                if item is _END:
                    stopped = True
                    callback(None)
                    return
                resumed = False
                step(item, proceed)
                if stopped or not resumed:
                    # failed, or waiting on an asynchronous done()
                    return
        finally:
            looping = False

    proceed()


__all__ = [
    "each_series",
    "noop",
    "capitalize",
    "pluralize",
    "underscore",
    "type_of",
    "split_callback",
    "as_list",
]
