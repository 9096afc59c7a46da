"""
Async bridge for callback-style operations.

Every lifecycle and relation operation takes a trailing ``callback``
continuation. :func:`deferred` turns such a call into an awaitable:

    ```python
    user = await deferred(User.find, 1)
    await deferred(user.save)
    posts = await deferred(user.posts.find_all, {"limit": 10})
    ```
"""

import asyncio
from typing import Any, Callable

from .errors import ModelError


def _settle(future: asyncio.Future, err: Any, results: tuple) -> None:
    if future.done():
        return
    if err:
        if not isinstance(err, BaseException):
            err = ModelError(str(err))
        future.set_exception(err)
    elif not results:
        future.set_result(None)
    elif len(results) == 1:
        future.set_result(results[0])
    else:
        future.set_result(results)


async def deferred(method: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Call ``method(*args, callback=..., **kwargs)`` and await its callback.

    Returns:
        ``None`` when the callback received no result, the result itself
        when it received one, a tuple when it received several

    Raises:
        The error passed to the callback; non-exception errors are wrapped
        in :class:`ModelError`
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def callback(err=None, *results):
        # adapters may call back from another thread
        loop.call_soon_threadsafe(_settle, future, err, results)

    method(*args, callback=callback, **kwargs)
    return await future


__all__ = ["deferred"]
