# Copyright (c) 2017-2025 by Ron Frederick <ronf@timeheart.net> and others.
#
# This program and the accompanying materials are made available under
# the terms of the Eclipse Public License v2.0 which accompanies this
# distribution and is available at:
#
#     http://www.eclipse.org/legal/epl-2.0/
#
# This program may also be made available under the following secondary
# licenses when the conditions for such availability set forth in the
# Eclipse Public License v2.0 are satisfied:
#
#    GNU General Public License, Version 2.0, or any later versions of
#    that license
#
# SPDX-License-Identifier: EPL-2.0 OR GPL-2.0-or-later
#
# Contributors:
#     Ron Frederick - initial implementation, API, and documentation
#     Jonathan Slenders - proposed changes to allow SFTP server callbacks
#                         to be coroutines


"""SCP handler for sending files to a remote scp -t"""

import os
from typing import Callable

from scpwire.errors import LocalFileError, SCPError, SourceSizeError
from scpwire.filesystem import LocalFile
from scpwire.logging import Logger
from scpwire.logging.scp_logging_models import (
    DirectoryTransferred,
    FileTransferred,
    SessionTeardownError,
)
from scpwire.models import (
    EndDirectoryHeader,
    FileHeader,
    FileInfo,
    StartDirectoryHeader,
    TimeHeader,
)

from .scp import SCP_BLOCK_SIZE, SCPHandler


ProgressHandler = Callable[[bytes, int, int], None]


class SCPSource:
    """SCP handler for sending files"""

    def __init__(
        self,
        handler: SCPHandler,
        block_size: int = SCP_BLOCK_SIZE,
        progress_handler: ProgressHandler | None = None,
        logger: Logger | None = None,
    ):
        self._handler = handler
        self._block_size = block_size
        self._progress_handler = progress_handler
        self._depth = 0

        if logger is None:
            logger = Logger()

        self._logger = logger

    @property
    def depth(self) -> int:
        return self._depth

    async def start(self) -> None:
        """Wait for the remote to report that it is ready"""

        await self._handler.check_response()

    async def _make_t_request(self, info: FileInfo, path: str) -> None:
        await self._handler.make_request(
            TimeHeader(int(info.mtime), int(info.atime)),
            path,
        )

    async def write_file(
        self,
        info: FileInfo,
        source: LocalFile,
        path: str | None = None,
    ) -> bool:
        """Send one file, returning False if the remote declined it

        Exactly info.size bytes are read from source, which is closed
        whether or not the transfer succeeds.
        """

        if path is None:
            path = info.name

        try:
            sent = await self._write_file(info, source, path)

        except BaseException:
            await self._close_source(source, path, failed=True)
            raise

        await self._close_source(source, path)

        return sent

    async def _write_file(
        self,
        info: FileInfo,
        source: LocalFile,
        path: str,
    ) -> bool:
        await self._make_t_request(info, path)

        reply = await self._handler.make_request(
            FileHeader(
                info.permissions,
                info.size,
                os.fsencode(info.name),
            ),
            path,
        )

        if not reply.ok:
            return False

        await self._send_body(info, source, path)

        await self._logger.log(
            FileTransferred(
                message=f'Sent {path} ({info.size} bytes)',
                path=path,
                size=info.size,
                mode=info.mode,
                direction='send',
            ),
            name='scp',
        )

        return True

    async def _send_body(
        self,
        info: FileInfo,
        source: LocalFile,
        path: str,
    ) -> None:
        size = info.size
        progress_path = os.fsencode(path)
        local_exc: SCPError | None = None
        offset = 0

        if self._progress_handler and size == 0:
            self._progress_handler(progress_path, 0, 0)

        while offset < size:
            blocklen = min(size - offset, self._block_size)

            if local_exc:
                data = blocklen * b'\0'
            else:
                data, local_exc = await self._read_block(
                    source,
                    blocklen,
                    offset,
                    size,
                    path,
                )

            await self._handler.send_data(data)
            offset += len(data)

            if self._progress_handler:
                self._progress_handler(progress_path, offset, size)

        if local_exc is None:
            _, local_exc = await self._read_block(
                source,
                1,
                size,
                size,
                path,
            )

        if local_exc:
            await self._handler.send_warning(local_exc)
        else:
            await self._handler.send_ok()

        await self._handler.check_response(path)

        if local_exc:
            raise local_exc

    async def _read_block(
        self,
        source: LocalFile,
        blocklen: int,
        offset: int,
        size: int,
        path: str,
    ) -> tuple[bytes, SCPError | None]:
        try:
            data = await source.read(blocklen)

        except OSError as exc:
            return blocklen * b'\0', LocalFileError('read', path, [exc])

        if offset >= size:
            if data:
                return data, SourceSizeError(size, size + len(data), path)

            return b'', None

        if not data:
            return blocklen * b'\0', SourceSizeError(size, offset, path)

        if len(data) > blocklen:
            return data[:blocklen], SourceSizeError(size, offset + len(data), path)

        return data, None

    async def start_directory(
        self,
        info: FileInfo,
        path: str | None = None,
    ) -> None:
        if path is None:
            path = info.name

        await self._make_t_request(info, path)
        await self._handler.make_request(
            StartDirectoryHeader(
                info.permissions,
                os.fsencode(info.name),
            ),
            path,
        )

        self._depth += 1

        await self._logger.log(
            DirectoryTransferred(
                message=f'Sent directory {path}',
                path=path,
                mode=info.mode,
                direction='send',
            ),
            name='scp',
        )

    async def end_directory(self) -> None:
        if self._depth == 0:
            raise RuntimeError(
                'end_directory() called without a matching start_directory()'
            )

        await self._handler.make_request(EndDirectoryHeader())
        self._depth -= 1

    async def _close_source(
        self,
        source: LocalFile,
        path: str,
        failed: bool = False,
    ) -> None:
        try:
            await source.close()

        except OSError as err:
            if failed:
                await self._logger.log(
                    SessionTeardownError(
                        message=f'Failed to close {path}: {err}',
                        command=self._handler.command,
                        error=str(err),
                    ),
                    name='scp',
                )

                return

            raise LocalFileError('close', path, [err]) from err
