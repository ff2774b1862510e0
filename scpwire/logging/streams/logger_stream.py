import asyncio
import io
import os
import pathlib
import sys
from collections import defaultdict
from typing import BinaryIO, Dict

import msgspec

from scpwire.logging.config import LoggingConfig, StreamType
from scpwire.logging.models import Log


DEFAULT_TEMPLATE = (
    "{timestamp} - {level} - {thread_id} - "
    "{filename}:{function_name}.{line_number} - {message}"
)

DEFAULT_LOGFILE = "logs.json"


def split_log_path(path: str | None) -> tuple[str | None, str | None]:
    """Split a logfile or log directory path into (filename, directory)"""

    if not path:
        return None, None

    log_path = pathlib.Path(path).absolute()

    if log_path.suffix:
        return log_path.name, str(log_path.parent)

    return None, str(log_path)


class LoggerStream:
    """Output for one named logger

    Entries are rendered through a template to stdout or stderr. When a
    logfile or log directory applies, each Log is appended to a JSON
    lines file instead.
    """

    def __init__(
        self,
        name: str = "default",
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
    ) -> None:
        self.name = name
        self.template = template
        self.filename = filename
        self.directory = directory

        self._config = LoggingConfig()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._streams: Dict[StreamType, io.TextIOBase] = {}
        self._files: Dict[str, BinaryIO] = {}
        self._file_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def initialize(self) -> None:
        self._loop = asyncio.get_running_loop()

        self._streams[StreamType.STDOUT] = sys.stdout
        self._streams[StreamType.STDERR] = sys.stderr

    async def log(
        self,
        log: Log,
        template: str | None = None,
        path: str | None = None,
    ) -> None:
        if not self._config.enabled(self.name, log.entry.level):
            return

        if self._loop is None:
            await self.initialize()

        logfile_path = self._to_logfile_path(path)

        if logfile_path:
            await self._append(log, logfile_path)
            return

        if template is None:
            template = self.template or DEFAULT_TEMPLATE

        await self._render(log, template)

    async def close(self) -> None:
        files = list(self._files.items())
        self._files.clear()

        for logfile_path, logfile in files:
            async with self._file_locks[logfile_path]:
                if not logfile.closed:
                    await self._loop.run_in_executor(None, logfile.close)

    def _to_logfile_path(self, path: str | None) -> str | None:
        filename, directory = split_log_path(path)

        filename = filename or self.filename
        directory = directory or self.directory or self._config.directory

        if filename is None and directory is None:
            return None

        if filename is None:
            filename = DEFAULT_LOGFILE

        assert filename.endswith(".json"), f"Log file {filename} must be a .json file"

        return os.path.join(directory or os.getcwd(), filename)

    async def _render(self, log: Log, template: str) -> None:
        line = log.entry.to_template(
            template,
            context={
                "filename": log.filename,
                "function_name": log.function_name,
                "line_number": log.line_number,
                "thread_id": log.thread_id,
                "timestamp": log.timestamp,
            },
        )

        stream = self._streams[self._config.output]

        await self._loop.run_in_executor(
            None,
            self._write_line,
            stream,
            line,
        )

    def _write_line(self, stream: io.TextIOBase, line: str) -> None:
        stream.write(line + "\n")
        stream.flush()

    async def _append(self, log: Log, logfile_path: str) -> None:
        data = msgspec.json.encode(log) + b"\n"

        async with self._file_locks[logfile_path]:
            logfile = self._files.get(logfile_path)

            if logfile is None or logfile.closed:
                logfile = await self._loop.run_in_executor(
                    None,
                    self._open_logfile,
                    logfile_path,
                )

                self._files[logfile_path] = logfile

            await self._loop.run_in_executor(
                None,
                self._write_data,
                logfile,
                data,
            )

    def _open_logfile(self, logfile_path: str) -> BinaryIO:
        os.makedirs(os.path.dirname(logfile_path), exist_ok=True)
        return open(logfile_path, "ab")

    def _write_data(self, logfile: BinaryIO, data: bytes) -> None:
        logfile.write(data)
        logfile.flush()
