from __future__ import annotations

import asyncio
import os
import pathlib
import posixpath
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import ValidationError

from scpwire.directory import AcceptFn, DirectoryReconstructor, DirectoryWalker
from scpwire.env import Env, load_env
from scpwire.errors import (
    LocalFileError,
    SCPTimeoutError,
    UnexpectedMessageError,
    scp_error,
)
from scpwire.filesystem import LocalFile, LocalFS
from scpwire.logging import Logger, LoggingConfig
from scpwire.logging.scp_logging_models import ConnectionOpened, LocalCloseError
from scpwire.models import (
    ConnectionOptions,
    FileHeader,
    FileInfo,
    Reply,
    ReplyKind,
    TimeHeader,
    describe,
    times_of,
)
from scpwire.protocols import (
    AsyncSSHTransport,
    ConnectionType,
    CommandTransport,
    ProgressHandler,
    SCPConnection,
    SCPHandler,
    SCPSink,
    SCPSource,
    SSHConnection,
)


T = TypeVar('T')

PathLike = str | pathlib.Path | pathlib.PurePath


class SCPClient:
    """Copies files and trees over SCP using one remote command per call

    Each operation starts its own remote scp, so a client may be reused
    for any number of sequential transfers. Concurrent operations on one
    client each get their own session.
    """

    def __init__(
        self,
        transport: CommandTransport,
        env: Env | None = None,
        scp_path: str | None = None,
        block_size: int | None = None,
        progress_handler: ProgressHandler | None = None,
        cancel: asyncio.Event | None = None,
    ):
        if env is None:
            env = load_env(Env)

        self.env = env
        self.scp_path = scp_path or env.SCP_BINARY
        self.block_size = block_size or env.SCP_BLOCK_SIZE
        self.progress_handler = progress_handler
        self.cancel = cancel

        self._transport = transport
        self._connection: SSHConnection | None = None
        self._fs = LocalFS()

        logging_config = LoggingConfig()
        logging_config.update(
            log_directory=env.SCP_LOG_DIRECTORY,
            log_level=env.SCP_LOG_LEVEL,
            log_output=env.SCP_LOG_OUTPUT,
        )

        self._logger = Logger()

    @classmethod
    async def connect(
        cls,
        options: ConnectionOptions,
        env: Env | None = None,
        **kwargs: Any,
    ) -> SCPClient:
        """Open an SSH connection and return a client that owns it"""

        if env is None:
            env = load_env(Env)

        connection = SSHConnection()
        ssh_connection = await connection.connect(
            options,
            connect_timeout=env.SCP_CONNECT_TIMEOUT,
        )

        client = cls(
            AsyncSSHTransport(ssh_connection),
            env=env,
            **kwargs,
        )

        client._connection = connection

        await client._logger.log(
            ConnectionOpened(
                message=f'Connected to {options.host}:{options.port}',
                host=options.host,
                port=options.port,
            ),
            name='scp',
        )

        return client

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()

        await self._logger.close()

    async def __aenter__(self) -> SCPClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def receive(
        self,
        src_file: PathLike,
        dest: Any,
        cancel: asyncio.Event | None = None,
        timeout: int | float | None = None,
    ) -> FileInfo:
        """Copy one remote file into a binary writer"""

        src_file = os.fspath(src_file)

        async def operation(sink: SCPSink) -> FileInfo:
            time, header = await self._read_file_header(sink, src_file)
            await sink.copy_file_body_to(header, LocalFile(dest), src_file)

            return self._to_file_info(header, time)

        return await self._execute(
            self._receive(src_file, operation, cancel=cancel),
            src_file,
            timeout=timeout,
        )

    async def receive_file(
        self,
        src_file: PathLike,
        dest_file: PathLike,
        cancel: asyncio.Event | None = None,
        timeout: int | float | None = None,
    ) -> None:
        """Copy one remote file to a local path, keeping mode and times"""

        src_file = os.fspath(src_file)
        dest_file = os.fspath(dest_file)

        if await self._fs.isdir(dest_file):
            dest_file = os.path.join(dest_file, posixpath.basename(src_file))

        async def operation(sink: SCPSink) -> None:
            time, header = await self._read_file_header(sink, src_file)

            destination = await self._fs.open_write(dest_file)

            try:
                await sink.copy_file_body_to(header, destination, dest_file)

            except BaseException:
                await self._abandon(destination, dest_file)
                raise

            await self._fs.close(destination)
            await self._fs.set_attributes(
                dest_file,
                header.mode,
                *times_of(time),
            )

        await self._execute(
            self._receive(src_file, operation, cancel=cancel),
            src_file,
            timeout=timeout,
        )

    async def receive_dir(
        self,
        src_dir: PathLike,
        dest_dir: PathLike,
        accept: AcceptFn | None = None,
        cancel: asyncio.Event | None = None,
        timeout: int | float | None = None,
    ) -> None:
        """Rebuild a remote tree at dest_dir

        If dest_dir exists the remote directory is created inside it,
        otherwise dest_dir itself takes the remote directory's place.
        """

        src_dir = os.fspath(src_dir)
        dest_dir = os.fspath(dest_dir)

        async def operation(sink: SCPSink) -> None:
            dest_existed = await self._fs.exists(dest_dir)

            if dest_existed and not await self._fs.isdir(dest_dir):
                raise LocalFileError(
                    'receive directory',
                    dest_dir,
                    [NotADirectoryError(dest_dir)],
                )

            if not dest_existed:
                await self._fs.makedirs(dest_dir)

            reconstructor = DirectoryReconstructor(
                self._fs,
                sink,
                accept=accept,
                logger=self._logger,
            )

            await reconstructor.reconstruct(
                dest_dir,
                elide_root=not dest_existed,
            )

        await self._execute(
            self._receive(src_dir, operation, recurse=True, cancel=cancel),
            src_dir,
            timeout=timeout,
        )

    async def send(
        self,
        info: FileInfo,
        source: Any,
        dest_file: PathLike,
        cancel: asyncio.Event | None = None,
        timeout: int | float | None = None,
    ) -> None:
        """Push a binary reader as the remote file dest_file

        The header carries basename(dest_file) with the mode and times
        from info. source is closed once the transfer ends.
        """

        dest_file = os.fspath(dest_file)
        remote_dir, name = posixpath.split(dest_file)

        if not isinstance(source, LocalFile):
            source = LocalFile(source)

        try:
            info = self._named(info, name, dest_file)

            async def operation(scp_source: SCPSource) -> None:
                await scp_source.write_file(info, source, path=dest_file)

            await self._execute(
                self._send(
                    remote_dir or '.',
                    operation,
                    must_be_dir=True,
                    cancel=cancel,
                ),
                dest_file,
                timeout=timeout,
            )

        finally:
            if not source.closed:
                await self._fs.close(source)

    async def send_file(
        self,
        src_file: PathLike,
        dest_file: PathLike,
        cancel: asyncio.Event | None = None,
        timeout: int | float | None = None,
    ) -> None:
        src_file = os.fspath(src_file)
        st = await self._fs.stat(src_file)
        info = FileInfo.from_stat(os.path.basename(src_file), st)

        if not info.is_regular:
            raise LocalFileError(
                'send',
                src_file,
                [IsADirectoryError(src_file)] if info.is_dir else [],
            )

        source = await self._fs.open_read(src_file)

        await self.send(
            info,
            source,
            dest_file,
            cancel=cancel,
            timeout=timeout,
        )

    async def send_dir(
        self,
        src_dir: PathLike,
        dest_dir: PathLike,
        accept: AcceptFn | None = None,
        cancel: asyncio.Event | None = None,
        timeout: int | float | None = None,
    ) -> None:
        src_dir = os.fspath(src_dir)
        dest_dir = os.fspath(dest_dir)

        async def operation(scp_source: SCPSource) -> None:
            walker = DirectoryWalker(
                self._fs,
                scp_source,
                accept=accept,
                logger=self._logger,
            )

            await walker.walk(src_dir)

        await self._execute(
            self._send(dest_dir, operation, recurse=True, cancel=cancel),
            dest_dir,
            timeout=timeout,
        )

    async def _receive(
        self,
        src_path: str,
        operation: Callable[[SCPSink], Awaitable[T]],
        recurse: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> T:
        async def run(handler: SCPHandler) -> T:
            sink = SCPSink(
                handler,
                block_size=self.block_size,
                progress_handler=self.progress_handler,
                logger=self._logger,
            )

            await sink.start()

            return await operation(sink)

        connection = self._create_connection(
            'SOURCE',
            src_path,
            recurse=recurse,
            cancel=cancel,
        )

        return await connection.run(run)

    async def _send(
        self,
        dest_path: str,
        operation: Callable[[SCPSource], Awaitable[T]],
        recurse: bool = False,
        must_be_dir: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> T:
        async def run(handler: SCPHandler) -> T:
            source = SCPSource(
                handler,
                block_size=self.block_size,
                progress_handler=self.progress_handler,
                logger=self._logger,
            )

            await source.start()

            return await operation(source)

        connection = self._create_connection(
            'DEST',
            dest_path,
            recurse=recurse,
            must_be_dir=must_be_dir,
            cancel=cancel,
        )

        return await connection.run(run)

    def _create_connection(
        self,
        connection_type: ConnectionType,
        path: str,
        recurse: bool = False,
        must_be_dir: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> SCPConnection:
        return SCPConnection(
            self._transport,
            connection_type,
            path,
            scp_path=self.scp_path,
            must_be_dir=must_be_dir,
            recurse=recurse,
            cancel=cancel or self.cancel,
            logger=self._logger,
        )

    async def _execute(
        self,
        operation: Awaitable[T],
        path: str,
        timeout: int | float | None = None,
    ) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=timeout)

        except asyncio.TimeoutError as err:
            raise scp_error(
                SCPTimeoutError,
                f'Timed out after {timeout} seconds',
                path,
            ) from err

    def _named(self, info: FileInfo, name: str, dest_file: str) -> FileInfo:
        try:
            return info.renamed(name)

        except ValidationError as err:
            raise LocalFileError(
                'send',
                dest_file,
                [ValueError(f'{name!r} is not a file name')],
            ) from err

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

    async def _read_file_header(
        self,
        sink: SCPSink,
        src_file: str,
    ) -> tuple[TimeHeader | None, FileHeader]:
        time: TimeHeader | None = None

        while True:
            message = await sink.read_header_or_reply()

            match message:
                case Reply(reply_kind=ReplyKind.OK):
                    continue

                case TimeHeader() if time is None:
                    time = message

                case FileHeader():
                    return time, message

                case _:
                    raise UnexpectedMessageError(
                        'file header',
                        describe(message),
                        src_file,
                    )

    def _to_file_info(
        self,
        header: FileHeader,
        time: TimeHeader | None,
    ) -> FileInfo:
        mtime, atime = times_of(time)

        return FileInfo.for_file(
            os.fsdecode(header.name),
            header.size,
            header.mode & 0o7777,
            mtime or 0,
            atime or 0,
        )
