from __future__ import annotations

import datetime
import threading
from types import FrameType
from typing import Generic, TypeVar

import msgspec

from .entry import Entry


T = TypeVar('T', bound=Entry)


class Log(msgspec.Struct, Generic[T], kw_only=True):
    entry: T
    logger: str = 'default'
    filename: str
    function_name: str
    line_number: int
    thread_id: int = msgspec.field(default_factory=threading.get_native_id)
    timestamp: str = msgspec.field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC).isoformat(),
    )

    @classmethod
    def from_frame(
        cls,
        entry: T,
        logger: str,
        frame: FrameType,
    ) -> Log[T]:
        code = frame.f_code

        return cls(
            entry=entry,
            logger=logger,
            filename=code.co_filename,
            function_name=code.co_name,
            line_number=frame.f_lineno,
        )
