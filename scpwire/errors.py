from typing import Sequence, Type, TypeVar


E = TypeVar('E', bound='SCPError')


class SCPError(Exception):
    """General SCP error"""

    def __init__(self, reason: str, path: str | None = None):
        if path:
            super().__init__(f'{reason}: {path}')
        else:
            super().__init__(reason)

        self.reason = reason
        self.path = path


class TransportError(SCPError):
    """The channel to the remote scp process failed"""


class RemoteExitError(TransportError):

    def __init__(
        self,
        exit_status: int | None,
        stderr: str = '',
        path: str | None = None,
    ):
        reason = f'remote scp exited with status {exit_status}'
        if stderr:
            reason = f'{reason} ({stderr.strip()})'

        super().__init__(reason, path=path)
        self.exit_status = exit_status
        self.stderr = stderr


class SCPCancelledError(TransportError):
    """The session was closed by its cancellation handle"""


class SCPTimeoutError(TransportError):
    """The operation did not finish within its timeout"""


class ProtocolError(SCPError):
    """The remote sent something that is not valid SCP"""


class UnexpectedMessageError(ProtocolError):

    def __init__(self, expected: str, actual: str, path: str | None = None):
        super().__init__(
            f'expected {expected} message, got {actual}',
            path=path,
        )

        self.expected = expected
        self.actual = actual


class RemoteFatalError(SCPError):
    """The remote scp process reported a fatal error"""


class LocalFileError(SCPError):

    def __init__(
        self,
        operation: str,
        path: str,
        errors: Sequence[BaseException] = (),
    ):
        causes = '; '.join(str(err) for err in errors)
        reason = f'failed to {operation}'
        if causes:
            reason = f'{reason} ({causes})'

        super().__init__(reason, path=path)
        self.operation = operation
        self.errors = list(errors)


class FilterError(SCPError):
    """The accept function raised while deciding on an entry"""


class SourceSizeError(SCPError):

    def __init__(self, expected: int, actual: int, path: str | None = None):
        if actual < expected:
            reason = f'source ended after {actual} of {expected} bytes'
        else:
            reason = f'source supplied more than {expected} bytes'

        super().__init__(reason, path=path)
        self.expected = expected
        self.actual = actual


def scp_error(
    exc_class: Type[E],
    reason: bytes | str,
    path: bytes | str | None = None,
) -> E:
    """Construct an SCP exception from wire or local values"""

    if isinstance(reason, bytes):
        reason = reason.decode('utf-8', errors='replace')

    if isinstance(path, bytes):
        path = path.decode('utf-8', errors='replace')

    return exc_class(reason, path=path)
