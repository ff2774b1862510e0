import asyncio
import os
import stat
from typing import Any, Callable, TypeVar

from scpwire.errors import LocalFileError

from .local_file import LocalFile


T = TypeVar('T')

WRITE_FLAGS = os.O_RDWR | os.O_CREAT | os.O_TRUNC


class LocalFS:
    """Local filesystem operations used by the walker and reconstructor.

    Every call runs in the default executor. An ``OSError`` is re-raised
    as ``LocalFileError`` naming the operation and path.
    """

    async def stat(self, path: str) -> os.stat_result:
        return await self._run('stat', path, os.stat, path)

    async def lstat(self, path: str) -> os.stat_result:
        return await self._run('lstat', path, os.lstat, path)

    async def exists(self, path: str) -> bool:
        return await self._run('stat', path, os.path.exists, path)

    async def isdir(self, path: str) -> bool:
        return await self._run('stat', path, os.path.isdir, path)

    async def listdir(self, path: str) -> list[str]:
        names = await self._run('list directory', path, os.listdir, path)
        return sorted(names)

    async def mkdir(self, path: str, mode: int = 0o777) -> None:
        await self._run('create directory', path, os.mkdir, path, mode)

    async def makedirs(self, path: str, mode: int = 0o777) -> None:
        await self._run(
            'create directory',
            path,
            os.makedirs,
            path,
            mode,
            True,
        )

    async def chmod(self, path: str, mode: int) -> None:
        await self._run('chmod', path, os.chmod, path, mode)

    async def utime(
        self,
        path: str,
        atime: int | float,
        mtime: int | float,
    ) -> None:
        await self._run('set times', path, os.utime, path, (atime, mtime))

    async def set_attributes(
        self,
        path: str,
        mode: int,
        mtime: int | float | None = None,
        atime: int | float | None = None,
    ) -> None:
        """Apply permissions, then times, attempting both"""

        failures: list[LocalFileError] = []

        try:
            await self.chmod(path, stat.S_IMODE(mode))
        except LocalFileError as err:
            failures.append(err)

        if mtime is not None and atime is not None:
            try:
                await self.utime(path, atime, mtime)
            except LocalFileError as err:
                failures.append(err)

        if len(failures) == 1:
            raise failures[0]

        if failures:
            raise LocalFileError(
                'chmod and set times',
                path,
                [cause for failure in failures for cause in failure.errors],
            )

    async def open_read(self, path: str) -> LocalFile:
        file_obj = await self._run('open', path, open, path, 'rb')
        return LocalFile(file_obj, path=path)

    async def open_write(self, path: str, mode: int = 0o666) -> LocalFile:
        file_obj = await self._run('create', path, self._open_write, path, mode)
        return LocalFile(file_obj, path=path)

    async def close(self, file: LocalFile) -> None:
        try:
            await file.close()

        except OSError as err:
            raise LocalFileError('close', file.path, [err]) from err

    def _open_write(self, path: str, mode: int):
        fd = os.open(path, WRITE_FLAGS, mode)

        try:
            return os.fdopen(fd, 'wb')

        except Exception:
            os.close(fd)
            raise

    async def _run(
        self,
        operation: str,
        path: str,
        call: Callable[..., T],
        *args: Any,
    ) -> T:
        loop = asyncio.get_running_loop()

        try:
            return await loop.run_in_executor(None, call, *args)

        except OSError as err:
            raise LocalFileError(operation, path, [err]) from err
