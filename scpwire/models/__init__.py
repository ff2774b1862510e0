from .connection_options import ConnectionOptions as ConnectionOptions
from .file_info import FileInfo as FileInfo
from .headers import (
    EndDirectoryHeader as EndDirectoryHeader,
    FileHeader as FileHeader,
    Message as Message,
    Reply as Reply,
    ReplyKind as ReplyKind,
    StartDirectoryHeader as StartDirectoryHeader,
    TimeHeader as TimeHeader,
    describe as describe,
    times_of as times_of,
)
