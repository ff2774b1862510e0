import asyncio

import asyncssh

from scpwire.errors import SCPTimeoutError, TransportError, scp_error
from scpwire.models import ConnectionOptions


class SSHConnection:

    def __init__(self):
        self.connected: bool = False
        self.connection: asyncssh.SSHClientConnection | None = None

        self.lock = asyncio.Lock()

    async def connect(
        self,
        options: ConnectionOptions,
        connect_timeout: int | float | None = None,
    ) -> asyncssh.SSHClientConnection:
        async with self.lock:
            if self.connected:
                return self.connection

            kwargs = options.to_dict()
            if connect_timeout is not None and 'connect_timeout' not in kwargs:
                kwargs['connect_timeout'] = connect_timeout

            try:
                self.connection = await asyncssh.connect(
                    options.host,
                    port=options.port,
                    **kwargs,
                )

            except asyncio.TimeoutError as err:
                raise scp_error(
                    SCPTimeoutError,
                    'Timed out connecting',
                    options.host,
                ) from err

            except (OSError, asyncssh.Error) as err:
                raise scp_error(
                    TransportError,
                    f'Failed to connect ({err})',
                    options.host,
                ) from err

            self.connected = True

            return self.connection

    async def close(self) -> None:
        async with self.lock:
            if not self.connected:
                return

            self.connected = False
            self.connection.close()
            await self.connection.wait_closed()
