import asyncio
import inspect
from typing import Any, Callable


class LocalFile:
    """Async view over a binary file object.

    The wrapped object may be a regular file opened by ``LocalFS`` or any
    caller supplied reader/writer whose ``read``, ``write`` and ``close``
    are either plain methods or coroutine functions.
    """

    def __init__(
        self,
        file_obj: Any,
        path: str | None = None,
    ) -> None:
        self.path = path
        self._file = file_obj
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, size: int) -> bytes:
        return await self._call(self._file.read, size)

    async def write(self, data: bytes) -> int | None:
        return await self._call(self._file.write, data)

    async def close(self) -> None:
        if self._closed:
            return

        self._closed = True

        close = getattr(self._file, 'close', None)
        if close:
            await self._call(close)

    async def _call(self, method: Callable[..., Any], *args: Any):
        if inspect.iscoroutinefunction(method):
            return await method(*args)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, method, *args)

        if inspect.isawaitable(result):
            result = await result

        return result
