from .models import Entry, LogLevel


class SessionDebug(Entry, kw_only=True):
    command: str
    level: LogLevel = LogLevel.DEBUG


class ConnectionOpened(Entry, kw_only=True):
    host: str
    port: int
    level: LogLevel = LogLevel.INFO


class SessionClosed(Entry, kw_only=True):
    command: str
    exit_status: int | None
    warnings: int
    level: LogLevel = LogLevel.DEBUG


class SessionCancelled(Entry, kw_only=True):
    command: str
    level: LogLevel = LogLevel.WARN


class SessionTeardownError(Entry, kw_only=True):
    command: str
    error: str
    level: LogLevel = LogLevel.ERROR


class RemoteWarning(Entry, kw_only=True):
    command: str
    path: str | None = None
    level: LogLevel = LogLevel.WARN


class FileTransferred(Entry, kw_only=True):
    path: str
    size: int
    mode: int
    direction: str
    level: LogLevel = LogLevel.DEBUG


class DirectoryTransferred(Entry, kw_only=True):
    path: str
    mode: int
    direction: str
    level: LogLevel = LogLevel.DEBUG


class EntryFiltered(Entry, kw_only=True):
    path: str
    is_dir: bool
    level: LogLevel = LogLevel.DEBUG


class EntrySkipped(Entry, kw_only=True):
    path: str
    level: LogLevel = LogLevel.DEBUG


class LocalCloseError(Entry, kw_only=True):
    path: str
    error: str
    level: LogLevel = LogLevel.ERROR
