from enum import Enum
from typing import ClassVar

import msgspec


class ReplyKind(Enum):
    OK = 0
    WARNING = 1
    FATAL = 2


class TimeHeader(msgspec.Struct, frozen=True):
    mtime: int
    atime: int

    kind: ClassVar[str] = 'time'


class FileHeader(msgspec.Struct, frozen=True):
    mode: int
    size: int
    name: bytes

    kind: ClassVar[str] = 'file'


class StartDirectoryHeader(msgspec.Struct, frozen=True):
    mode: int
    name: bytes

    kind: ClassVar[str] = 'start directory'


class EndDirectoryHeader(msgspec.Struct, frozen=True):

    kind: ClassVar[str] = 'end directory'


class Reply(msgspec.Struct, frozen=True):
    reply_kind: ReplyKind
    message: str = ''

    kind: ClassVar[str] = 'reply'

    @property
    def ok(self) -> bool:
        return self.reply_kind == ReplyKind.OK

    def describe(self) -> str:
        if self.message:
            return f'{self.reply_kind.name.lower()} reply ({self.message})'

        return f'{self.reply_kind.name.lower()} reply'


Message = (
    TimeHeader
    | FileHeader
    | StartDirectoryHeader
    | EndDirectoryHeader
    | Reply
)


def describe(message: Message | None) -> str:
    if message is None:
        return 'end of stream'

    if isinstance(message, Reply):
        return message.describe()

    return f'{message.kind} header'


def times_of(time: TimeHeader | None) -> tuple[int | None, int | None]:
    if time is None:
        return None, None

    return time.mtime, time.atime
