import os
import stat
from typing import Iterator

from scpwire.errors import LocalFileError
from scpwire.filesystem import LocalFS
from scpwire.logging import Logger
from scpwire.logging.scp_logging_models import EntryFiltered, EntrySkipped
from scpwire.models import FileInfo
from scpwire.protocols import SCPSource

from .accept import AcceptFn, evaluate


class DirectoryWalker:
    """Turns a local tree into start/write/end calls on an SCPSource

    Entries are visited depth first in sorted name order. Each directory
    on the stack has had its start sent, so popping it sends the
    matching end. Rejected directories are never pushed.
    """

    def __init__(
        self,
        fs: LocalFS,
        source: SCPSource,
        accept: AcceptFn | None = None,
        logger: Logger | None = None,
    ):
        self._fs = fs
        self._source = source
        self._accept = accept

        if logger is None:
            logger = Logger()

        self._logger = logger

    async def walk(self, src_dir: str) -> None:
        src_dir = os.path.normpath(src_dir)
        st = await self._fs.stat(src_dir)

        if not stat.S_ISDIR(st.st_mode):
            raise LocalFileError(
                'send directory',
                src_dir,
                [NotADirectoryError(src_dir)],
            )

        name = os.path.basename(os.path.abspath(src_dir))
        info = FileInfo.from_stat(name, st)

        if not await self._visit(os.path.dirname(src_dir), src_dir, info):
            return

        stack: list[tuple[str, Iterator[str]]] = [
            (src_dir, iter(await self._fs.listdir(src_dir))),
        ]

        while stack:
            dir_path, names = stack[-1]
            name = next(names, None)

            if name is None:
                stack.pop()
                await self._source.end_directory()
                continue

            path = os.path.join(dir_path, name)
            st = await self._fs.lstat(path)

            if not (stat.S_ISDIR(st.st_mode) or stat.S_ISREG(st.st_mode)):
                await self._logger.log(
                    EntrySkipped(
                        message=f'Skipping {path}: not a regular file or directory',
                        path=path,
                    ),
                    name='scp',
                )
                continue

            info = FileInfo.from_stat(name, st)

            if await self._visit(dir_path, path, info) and info.is_dir:
                stack.append((path, iter(await self._fs.listdir(path))))

    async def _visit(
        self,
        parent_dir: str,
        path: str,
        info: FileInfo,
    ) -> bool:
        if not await evaluate(self._accept, parent_dir, info, path):
            await self._logger.log(
                EntryFiltered(
                    message=f'Filtered out {path}',
                    path=path,
                    is_dir=info.is_dir,
                ),
                name='scp',
            )

            return False

        if info.is_dir:
            await self._source.start_directory(info, path=path)
        else:
            source = await self._fs.open_read(path)
            await self._source.write_file(info, source, path=path)

        return True
