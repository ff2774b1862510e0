from .scp import (
    SCPHandler as SCPHandler,
    SCP_BLOCK_SIZE as SCP_BLOCK_SIZE,
    encode_message as encode_message,
    parse_cd_args as parse_cd_args,
    parse_time_args as parse_time_args,
)
from .scp_connection import (
    ConnectionType as ConnectionType,
    SCPConnection as SCPConnection,
    build_command as build_command,
)
from .scp_sink import SCPSink as SCPSink
from .scp_source import (
    ProgressHandler as ProgressHandler,
    SCPSource as SCPSource,
)
from .ssh_connection import SSHConnection as SSHConnection
from .transport import (
    AsyncSSHChannel as AsyncSSHChannel,
    AsyncSSHTransport as AsyncSSHTransport,
    CommandChannel as CommandChannel,
    CommandTransport as CommandTransport,
)
