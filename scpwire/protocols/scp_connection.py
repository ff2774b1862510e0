import asyncio
import shlex
from typing import Awaitable, Callable, Literal, TypeVar

import asyncssh

from scpwire.errors import (
    RemoteExitError,
    SCPCancelledError,
    TransportError,
    scp_error,
)
from scpwire.logging import Logger
from scpwire.logging.scp_logging_models import (
    SessionCancelled,
    SessionClosed,
    SessionDebug,
    SessionTeardownError,
)

from .scp import SCPHandler
from .transport import CommandChannel, CommandTransport


T = TypeVar('T')

ConnectionType = Literal['SOURCE', 'DEST']
SessionState = Literal['CREATED', 'STARTED', 'CLOSING', 'CLOSED']


def build_command(
    scp_path: str,
    connection_type: ConnectionType,
    path: str,
    must_be_dir: bool = False,
    preserve: bool = True,
    recurse: bool = False,
) -> str:
    """Build the remote scp command line

    A SOURCE connection runs ``scp -f`` and sends us files, a DEST
    connection runs ``scp -t`` and receives them.
    """

    flags = 'f' if connection_type == 'SOURCE' else 't'

    if preserve:
        flags += 'p'

    if recurse:
        flags += 'r'

    if must_be_dir:
        flags += 'd'

    return f'{scp_path} -{flags} {shlex.quote(path)}'


class SCPConnection:
    """One remote scp process serving exactly one transfer"""

    __slots__ = (
        'command',
        'connection_type',
        'path',
        'state',
        'cancelled',
        'exit_status',
        'handler',
        '_transport',
        '_channel',
        '_cancel',
        '_watcher',
        '_logger',
    )

    def __init__(
        self,
        transport: CommandTransport,
        connection_type: ConnectionType,
        path: str,
        scp_path: str = 'scp',
        must_be_dir: bool = False,
        recurse: bool = False,
        cancel: asyncio.Event | None = None,
        logger: Logger | None = None,
    ):
        self.command = build_command(
            scp_path,
            connection_type,
            path,
            must_be_dir=must_be_dir,
            recurse=recurse,
        )

        self.connection_type = connection_type
        self.path = path
        self.state: SessionState = 'CREATED'
        self.cancelled = False
        self.exit_status: int | None = None
        self.handler: SCPHandler | None = None

        self._transport = transport
        self._channel: CommandChannel | None = None
        self._cancel = cancel
        self._watcher: asyncio.Task | None = None

        if logger is None:
            logger = Logger()

        self._logger = logger

    async def run(
        self,
        operation: Callable[[SCPHandler], Awaitable[T]],
    ) -> T:
        """Start the remote scp, run operation against it and close

        The remote exit status is checked only when operation succeeds.
        On any failure the session is aborted and the original error
        propagates.
        """

        handler = await self.start()

        try:
            result = await operation(handler)

        except asyncio.CancelledError:
            await self._teardown()
            raise

        except Exception as err:
            await self._teardown()

            if self.cancelled:
                raise scp_error(
                    SCPCancelledError,
                    'Transfer cancelled',
                    self.path,
                ) from err

            raise

        if self.cancelled:
            await self._teardown()
            raise scp_error(SCPCancelledError, 'Transfer cancelled', self.path)

        await self.close()

        return result

    async def start(self) -> SCPHandler:
        if self.state != 'CREATED':
            raise RuntimeError(f'Session is already {self.state.lower()}')

        if self._cancel and self._cancel.is_set():
            self.state = 'CLOSED'
            self.cancelled = True
            raise scp_error(SCPCancelledError, 'Transfer cancelled', self.path)

        await self._logger.log(
            SessionDebug(
                message=f'Starting remote scp: {self.command}',
                command=self.command,
            ),
            name='scp',
        )

        try:
            self._channel = await self._transport.open_channel(self.command)

        except (OSError, asyncssh.Error) as err:
            self.state = 'CLOSED'
            raise scp_error(
                TransportError,
                f'Failed to start remote scp ({err})',
                self.path,
            ) from err

        self.state = 'STARTED'
        self.handler = SCPHandler(
            self._channel,
            command=self.command,
            logger=self._logger,
        )

        if self._cancel:
            self._watcher = asyncio.create_task(self._watch(self._cancel))

        return self.handler

    async def close(self) -> int | None:
        """Close stdin, wait for the remote to exit and check its status

        The cancel watcher stays armed until the remote exits, so a cancel
        set while waiting aborts the channel and raises SCPCancelledError.
        """

        if self.state != 'STARTED':
            await self._stop_watcher()
            return self.exit_status

        self.state = 'CLOSING'

        try:
            self._channel.write_eof()
            self.exit_status = await self._channel.wait_closed()

        except asyncio.CancelledError:
            self.abort()
            raise

        except (OSError, asyncssh.Error) as err:
            if self.cancelled:
                raise scp_error(
                    SCPCancelledError,
                    'Transfer cancelled',
                    self.path,
                ) from err

            raise scp_error(
                TransportError,
                f'Failed to close remote scp ({err})',
                self.path,
            ) from err

        finally:
            await self._stop_watcher()
            self.state = 'CLOSED'

        if self.cancelled:
            raise scp_error(SCPCancelledError, 'Transfer cancelled', self.path)

        warnings = self.handler.warnings

        await self._logger.log(
            SessionClosed(
                message=f'Remote scp exited with status {self.exit_status}',
                command=self.command,
                exit_status=self.exit_status,
                warnings=warnings,
            ),
            name='scp',
        )

        if self.exit_status and warnings == 0:
            stderr = await self._read_stderr()

            raise RemoteExitError(
                self.exit_status,
                stderr=stderr,
                path=self.path,
            )

        return self.exit_status

    def abort(self) -> None:
        """Tear the channel down at once, unblocking pending I/O"""

        if self.state not in ('STARTED', 'CLOSING'):
            return

        self.state = 'CLOSED'
        self._channel.close()

    async def _watch(self, cancel: asyncio.Event) -> None:
        await cancel.wait()

        if self.state not in ('STARTED', 'CLOSING'):
            return

        self.cancelled = True

        await self._logger.log(
            SessionCancelled(
                message=f'Cancelling remote scp: {self.command}',
                command=self.command,
            ),
            name='scp',
        )

        self.abort()

    async def _stop_watcher(self) -> None:
        watcher = self._watcher
        self._watcher = None

        if watcher is None or watcher is asyncio.current_task():
            return

        if not watcher.done():
            watcher.cancel()

        try:
            await watcher

        except asyncio.CancelledError:
            pass

    async def _teardown(self) -> None:
        await self._stop_watcher()

        try:
            self.abort()

        except Exception as err:
            await self._logger.log(
                SessionTeardownError(
                    message=f'Failed to close remote scp: {err}',
                    command=self.command,
                    error=str(err),
                ),
                name='scp',
            )

    async def _read_stderr(self) -> str:
        try:
            stderr = await self._channel.read_stderr()

        except (OSError, asyncssh.Error):
            return ''

        return stderr.decode('utf-8', errors='replace')
