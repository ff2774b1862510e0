import os
import stat

from scpwire.errors import LocalFileError, ProtocolError, scp_error
from scpwire.filesystem import LocalFile, LocalFS
from scpwire.logging import Logger
from scpwire.logging.scp_logging_models import (
    DirectoryTransferred,
    EntryFiltered,
    LocalCloseError,
)
from scpwire.models import (
    EndDirectoryHeader,
    FileHeader,
    FileInfo,
    Reply,
    StartDirectoryHeader,
    TimeHeader,
    times_of,
)
from scpwire.protocols import SCPSink

from .accept import AcceptFn, evaluate


class Frame:
    """One level of directory nesting on the receive side"""

    __slots__ = (
        'path',
        'mode',
        'time',
        'skipping',
    )

    def __init__(
        self,
        path: str,
        mode: int | None = None,
        time: TimeHeader | None = None,
        skipping: bool = False,
    ):
        self.path = path
        self.mode = mode
        self.time = time
        self.skipping = skipping


class DirectoryReconstructor:
    """Rebuilds a tree under dest_dir from an SCPSink message stream

    The bottom frame is dest_dir itself and is never popped. When
    elide_root is set the first start directory maps onto dest_dir
    instead of a new child, without consulting the accept function.
    A rejected directory pushes a skipping frame, and everything
    beneath it is drained from the stream without touching disk.
    """

    def __init__(
        self,
        fs: LocalFS,
        sink: SCPSink,
        accept: AcceptFn | None = None,
        logger: Logger | None = None,
    ):
        self._fs = fs
        self._sink = sink
        self._accept = accept

        if logger is None:
            logger = Logger()

        self._logger = logger

    async def reconstruct(
        self,
        dest_dir: str,
        elide_root: bool = False,
    ) -> None:
        stack: list[Frame] = [Frame(dest_dir)]
        pending_time: TimeHeader | None = None

        while True:
            message = await self._sink.read_header_or_reply()

            match message:
                case None:
                    break

                case Reply():
                    continue

                case TimeHeader():
                    pending_time = message

                case StartDirectoryHeader():
                    time, pending_time = pending_time, None

                    if elide_root:
                        elide_root = False
                        stack.append(Frame(dest_dir, message.mode, time))
                        continue

                    stack.append(
                        await self._start_directory(stack[-1], message, time)
                    )

                case EndDirectoryHeader():
                    if len(stack) == 1:
                        raise scp_error(
                            ProtocolError,
                            'Unbalanced end directory',
                            dest_dir,
                        )

                    await self._end_directory(stack.pop())

                case FileHeader():
                    time, pending_time = pending_time, None
                    await self._receive_file(stack[-1], message, time)

        if len(stack) > 1:
            raise scp_error(
                ProtocolError,
                'Stream ended inside a directory',
                stack[-1].path,
            )

    async def _start_directory(
        self,
        parent: Frame,
        header: StartDirectoryHeader,
        time: TimeHeader | None,
    ) -> Frame:
        path = os.path.join(parent.path, os.fsdecode(header.name))

        if parent.skipping:
            return Frame(path, skipping=True)

        info = FileInfo.for_directory(
            os.fsdecode(header.name),
            header.mode & 0o7777,
            time.mtime if time else 0,
            time.atime if time else 0,
        )

        if not await evaluate(self._accept, parent.path, info, path):
            await self._logger.log(
                EntryFiltered(
                    message=f'Filtered out {path}',
                    path=path,
                    is_dir=True,
                ),
                name='scp',
            )

            return Frame(path, skipping=True)

        if await self._fs.exists(path):
            if not await self._fs.isdir(path):
                raise LocalFileError(
                    'create directory',
                    path,
                    [NotADirectoryError(path)],
                )

        else:
            await self._fs.mkdir(path, (header.mode & 0o7777) | stat.S_IRWXU)

        return Frame(path, header.mode, time)

    async def _end_directory(self, frame: Frame) -> None:
        if frame.skipping:
            return

        await self._fs.set_attributes(
            frame.path,
            frame.mode,
            *times_of(frame.time),
        )

        await self._logger.log(
            DirectoryTransferred(
                message=f'Received directory {frame.path}',
                path=frame.path,
                mode=frame.mode,
                direction='receive',
            ),
            name='scp',
        )

    async def _receive_file(
        self,
        parent: Frame,
        header: FileHeader,
        time: TimeHeader | None,
    ) -> None:
        path = os.path.join(parent.path, os.fsdecode(header.name))

        if parent.skipping:
            await self._sink.copy_file_body_to(header, None, path)
            return

        info = FileInfo.for_file(
            os.fsdecode(header.name),
            header.size,
            header.mode & 0o7777,
            time.mtime if time else 0,
            time.atime if time else 0,
        )

        if not await evaluate(self._accept, parent.path, info, path):
            await self._logger.log(
                EntryFiltered(
                    message=f'Filtered out {path}',
                    path=path,
                    is_dir=False,
                ),
                name='scp',
            )

            await self._sink.copy_file_body_to(header, None, path)
            return

        destination = await self._fs.open_write(path)

        try:
            await self._sink.copy_file_body_to(header, destination, path)

        except BaseException:
            await self._abandon(destination, path)
            raise

        await self._fs.close(destination)
        await self._fs.set_attributes(path, header.mode, *times_of(time))

    async def _abandon(self, destination: LocalFile, path: str) -> None:
        try:
            await self._fs.close(destination)

        except LocalFileError as err:
            await self._logger.log(
                LocalCloseError(
                    message=f'Failed to close {path}: {err}',
                    path=path,
                    error=str(err),
                ),
                name='scp',
            )
