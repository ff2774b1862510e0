from .env import Env as Env, load_env as load_env
from .errors import (
    FilterError as FilterError,
    LocalFileError as LocalFileError,
    ProtocolError as ProtocolError,
    RemoteExitError as RemoteExitError,
    RemoteFatalError as RemoteFatalError,
    SCPCancelledError as SCPCancelledError,
    SCPError as SCPError,
    SCPTimeoutError as SCPTimeoutError,
    SourceSizeError as SourceSizeError,
    TransportError as TransportError,
    UnexpectedMessageError as UnexpectedMessageError,
)
from .models import (
    ConnectionOptions as ConnectionOptions,
    FileInfo as FileInfo,
)
from .protocols import (
    AsyncSSHTransport as AsyncSSHTransport,
    CommandChannel as CommandChannel,
    CommandTransport as CommandTransport,
)
from .scp_client import SCPClient as SCPClient
