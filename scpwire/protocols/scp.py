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


"""SCP handlers"""

from typing import Tuple

from scpwire.errors import (
    ProtocolError,
    RemoteFatalError,
    SCPError,
    TransportError,
    scp_error,
)
from scpwire.logging import Logger
from scpwire.logging.scp_logging_models import RemoteWarning
from scpwire.models.headers import (
    EndDirectoryHeader,
    FileHeader,
    Message,
    Reply,
    ReplyKind,
    StartDirectoryHeader,
    TimeHeader,
)

from .transport import CommandChannel


SCP_BLOCK_SIZE = 256*1024    # 256 KiB


def parse_cd_args(args: bytes) -> Tuple[int, int, bytes]:
    """Parse arguments to an SCP copy or dir request"""

    try:
        permissions, size, name = args.split(b' ', 2)
        return int(permissions, 8), int(size), validate_name(name)
    except ValueError:
        raise scp_error(ProtocolError,
                        'Invalid copy or dir request') from None


def parse_time_args(args: bytes) -> Tuple[int, int]:
    """Parse argument to an SCP time request"""

    try:
        mtime, _, atime, _ = args.split()
        return int(mtime), int(atime)
    except ValueError:
        raise scp_error(ProtocolError, 'Invalid time request') from None


def validate_name(name: bytes) -> bytes:
    """Reject names that are not a single path component"""

    if not name or b'/' in name or name in (b'.', b'..'):
        raise ValueError(name)

    return name


def encode_message(message: Message) -> bytes:
    match message:
        case TimeHeader(mtime=mtime, atime=atime):
            return f'T{mtime} 0 {atime} 0\n'.encode('ascii')

        case FileHeader(mode=mode, size=size, name=name):
            args = f'C{mode & 0o7777:04o} {size} '
            return args.encode('ascii') + name + b'\n'

        case StartDirectoryHeader(mode=mode, name=name):
            args = f'D{mode & 0o7777:04o} 0 '
            return args.encode('ascii') + name + b'\n'

        case EndDirectoryHeader():
            return b'E\n'

        case Reply(reply_kind=ReplyKind.OK):
            return b'\0'

        case Reply(reply_kind=reply_kind, message=reason):
            return (
                bytes([reply_kind.value]) +
                reason.encode('utf-8', errors='replace').replace(b'\n', b' ') +
                b'\n'
            )


class SCPHandler:
    """SCP handler

    Frames messages over one command channel. Every write is drained before
    the handler reads again, so at most one header is ever in flight.
    """

    def __init__(
        self,
        channel: CommandChannel,
        command: str = '',
        logger: Logger | None = None,
    ):
        self._channel = channel
        self.command = command
        self.warnings = 0

        if logger is None:
            logger = Logger()

        self._logger = logger

    async def await_response(self) -> Reply:
        """Wait for an SCP response"""

        result = await self._read(1)

        if result == b'\0':
            return Reply(ReplyKind.OK)

        if not result:
            raise scp_error(TransportError, 'Connection lost')

        reason = await self._readline()

        if not reason.endswith(b'\n'):
            raise scp_error(TransportError, 'Connection lost')

        if result not in (b'\x01', b'\x02'):
            raise scp_error(ProtocolError,
                            b'Invalid response: ' + result + reason[:-1])

        return Reply(
            ReplyKind(result[0]),
            reason[:-1].decode('utf-8', errors='replace'),
        )

    async def check_response(self, path: str | None = None) -> Reply:
        """Wait for a response, raising if it is fatal"""

        reply = await self.await_response()

        if reply.reply_kind == ReplyKind.FATAL:
            raise scp_error(RemoteFatalError, reply.message, path)

        if reply.reply_kind == ReplyKind.WARNING:
            await self.record_warning(reply, path)

        return reply

    async def send_message(self, message: Message) -> None:
        await self._write(encode_message(message))

    async def make_request(
        self,
        message: Message,
        path: str | None = None,
    ) -> Reply:
        """Send an SCP request and wait for a response"""

        await self.send_message(message)

        return await self.check_response(path)

    async def send_data(self, data: bytes) -> None:
        """Send SCP file data"""

        await self._write(data)

    async def send_ok(self) -> None:
        """Send an SCP OK response"""

        await self.send_message(Reply(ReplyKind.OK))

    async def send_warning(self, exc: Exception) -> None:
        """Send an SCP warning response for a local failure"""

        if isinstance(exc, SCPError):
            reason = str(exc)
        elif isinstance(exc, OSError) and exc.strerror:
            reason = exc.strerror
        else:
            reason = str(exc)

        await self.send_message(Reply(ReplyKind.WARNING, 'scp: ' + reason))

    async def recv_message(self) -> Message | None:
        """Receive the next header or reply, None at end of stream

        A bare OK byte carries no line and is returned as an OK reply.
        """

        action = await self._read(1)

        if not action:
            return None

        if action == b'\0':
            return Reply(ReplyKind.OK)

        if action == b'\n':
            raise scp_error(ProtocolError, 'Unknown request')

        request = await self._readline()

        if not request.endswith(b'\n'):
            raise scp_error(TransportError, 'Connection lost')

        args = request[:-1]

        match action:
            case b'\x01' | b'\x02':
                return Reply(
                    ReplyKind(action[0]),
                    args.decode('utf-8', errors='replace'),
                )

            case b'T':
                mtime, atime = parse_time_args(args)
                return TimeHeader(mtime, atime)

            case b'C':
                permissions, size, name = parse_cd_args(args)
                return FileHeader(permissions, size, name)

            case b'D':
                permissions, _, name = parse_cd_args(args)
                return StartDirectoryHeader(permissions, name)

            case b'E':
                return EndDirectoryHeader()

            case _:
                raise scp_error(ProtocolError, 'Unknown request',
                                action + args)

    async def recv_data(self, n: int) -> bytes:
        """Receive SCP file data"""

        data = await self._read(n)

        if not data:
            raise scp_error(TransportError, 'Connection lost')

        return data

    async def record_warning(
        self,
        reply: Reply,
        path: str | None = None,
    ) -> None:
        self.warnings += 1

        await self._logger.log(
            RemoteWarning(
                message=f'Remote scp warning: {reply.message}',
                command=self.command,
                path=path,
            ),
            name='scp',
        )

    async def _read(self, n: int) -> bytes:
        try:
            return await self._channel.read(n)

        except OSError as err:
            raise scp_error(TransportError, 'Connection lost') from err

    async def _readline(self) -> bytes:
        try:
            return await self._channel.readline()

        except OSError as err:
            raise scp_error(TransportError, 'Connection lost') from err

    async def _write(self, data: bytes) -> None:
        try:
            self._channel.write(data)
            await self._channel.drain()

        except OSError as err:
            raise scp_error(TransportError, 'Connection lost') from err
