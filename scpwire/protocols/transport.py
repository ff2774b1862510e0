from __future__ import annotations

from typing import Protocol

import asyncssh

from scpwire.errors import TransportError, scp_error


class CommandChannel(Protocol):
    """One started remote command and its standard streams"""

    async def read(self, n: int) -> bytes:
        """Read up to n bytes of stdout, returning b'' at end of stream"""

    async def readline(self) -> bytes:
        """Read one line of stdout, which lacks b'\\n' at end of stream"""

    def write(self, data: bytes) -> None:
        """Queue data for the command's stdin"""

    async def drain(self) -> None:
        """Wait until queued stdin data has been accepted"""

    def write_eof(self) -> None:
        """Close the command's stdin"""

    async def read_stderr(self) -> bytes:
        """Return whatever the command wrote to stderr"""

    async def wait_closed(self) -> int | None:
        """Wait for the command to exit and return its exit status"""

    def close(self) -> None:
        """Tear the channel down, unblocking pending reads and writes"""


class CommandTransport(Protocol):

    async def open_channel(self, command: str) -> CommandChannel:
        """Start command on the remote host"""


class AsyncSSHChannel:

    def __init__(
        self,
        writer: asyncssh.SSHWriter[bytes],
        reader: asyncssh.SSHReader[bytes],
        stderr: asyncssh.SSHReader[bytes],
    ) -> None:
        self._writer = writer
        self._reader = reader
        self._stderr = stderr

    async def read(self, n: int) -> bytes:
        try:
            return await self._reader.read(n)

        except asyncssh.Error as err:
            raise scp_error(TransportError, err.reason) from err

    async def readline(self) -> bytes:
        try:
            return await self._reader.readline()

        except asyncssh.Error as err:
            raise scp_error(TransportError, err.reason) from err

    def write(self, data: bytes) -> None:
        self._writer.write(data)

    async def drain(self) -> None:
        try:
            await self._writer.drain()

        except asyncssh.Error as err:
            raise scp_error(TransportError, err.reason) from err

    def write_eof(self) -> None:
        if self._writer.can_write_eof():
            self._writer.write_eof()

    async def read_stderr(self) -> bytes:
        return await self._stderr.read()

    async def wait_closed(self) -> int | None:
        await self._writer.channel.wait_closed()
        return self._writer.channel.get_exit_status()

    def close(self) -> None:
        self._writer.channel.abort()


class AsyncSSHTransport:
    """Runs commands over an established asyncssh client connection"""

    def __init__(self, connection: asyncssh.SSHClientConnection) -> None:
        self.connection = connection

    async def open_channel(self, command: str) -> AsyncSSHChannel:
        writer, reader, stderr = await self.connection.open_session(
            command,
            encoding=None,
        )

        return AsyncSSHChannel(writer, reader, stderr)
