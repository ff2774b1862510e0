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


"""SCP handler for receiving files from a remote scp -f"""

import os

from scpwire.errors import LocalFileError, RemoteFatalError, scp_error
from scpwire.filesystem import LocalFile
from scpwire.logging import Logger
from scpwire.logging.scp_logging_models import FileTransferred
from scpwire.models import FileHeader, Message, Reply, ReplyKind

from .scp import SCP_BLOCK_SIZE, SCPHandler
from .scp_source import ProgressHandler


class SCPSink:
    """SCP handler for receiving files"""

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

        if logger is None:
            logger = Logger()

        self._logger = logger

    async def start(self) -> None:
        """Tell the remote to start sending"""

        await self._handler.send_ok()

    async def read_header_or_reply(self) -> Message | None:
        """Read the next header, a warning reply, or None at end of stream

        Headers are acknowledged as soon as they are decoded. A fatal reply
        raises RemoteFatalError, a warning is logged and returned, and an
        OK reply is returned as is.
        """

        message = await self._handler.recv_message()

        match message:
            case None:
                return None

            case Reply(reply_kind=ReplyKind.OK):
                return message

            case Reply(reply_kind=ReplyKind.FATAL, message=reason):
                raise scp_error(RemoteFatalError, reason)

            case Reply():
                await self._handler.record_warning(message)
                return message

            case _:
                await self._handler.send_ok()
                return message

    async def copy_file_body_to(
        self,
        header: FileHeader,
        destination: LocalFile | None,
        path: str | None = None,
    ) -> None:
        """Copy exactly header.size bytes, discarding them if destination is None"""

        if path is None:
            path = os.fsdecode(header.name)

        size = header.size
        progress_path = os.fsencode(path)
        local_exc: LocalFileError | None = None
        offset = 0

        if self._progress_handler and size == 0:
            self._progress_handler(progress_path, 0, 0)

        while offset < size:
            blocklen = min(size - offset, self._block_size)
            data = await self._handler.recv_data(blocklen)

            if destination and not local_exc:
                try:
                    await destination.write(data)
                except OSError as exc:
                    local_exc = LocalFileError('write', path, [exc])

            offset += len(data)

            if self._progress_handler:
                self._progress_handler(progress_path, offset, size)

        await self._handler.check_response(path)

        if local_exc:
            await self._handler.send_warning(local_exc)
            raise local_exc

        await self._handler.send_ok()

        if destination:
            await self._logger.log(
                FileTransferred(
                    message=f'Received {path} ({size} bytes)',
                    path=path,
                    size=size,
                    mode=header.mode,
                    direction='receive',
                ),
                name='scp',
            )
