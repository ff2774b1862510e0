import sys
from typing import Dict

from scpwire.logging.models import Entry, Log

from .logger_context import LoggerContext


class Logger:
    """Named logger contexts, created on first use"""

    def __init__(self) -> None:
        self._contexts: Dict[str, LoggerContext] = {}

    def configure(
        self,
        name: str = "default",
        template: str | None = None,
        path: str | None = None,
    ) -> None:
        """Set the template or logfile used by a named logger

        path may name a .json logfile or a directory for logs.json.
        """

        self._contexts[name] = LoggerContext(
            name=name,
            template=template,
            path=path,
            nested=True,
        )

    def context(
        self,
        name: str = "default",
        template: str | None = None,
        path: str | None = None,
        nested: bool = False,
    ) -> LoggerContext:
        context = self._contexts.get(name)

        if context is None:
            context = LoggerContext(
                name=name,
                template=template,
                path=path,
                nested=nested,
            )

            self._contexts[name] = context

        return context

    async def log(
        self,
        entry: Entry,
        name: str = "default",
        template: str | None = None,
        path: str | None = None,
    ) -> None:
        frame = sys._getframe(1)

        async with self.context(name=name, nested=True) as stream:
            await stream.log(
                Log.from_frame(entry, name, frame),
                template=template,
                path=path,
            )

    async def close(self) -> None:
        for context in self._contexts.values():
            await context.stream.close()
