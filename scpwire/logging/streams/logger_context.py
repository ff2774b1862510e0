from .logger_stream import LoggerStream, split_log_path


class LoggerContext:
    """Async context around a named LoggerStream

    Leaving the context closes the stream's logfiles unless the context
    is nested inside a longer lived logger.
    """

    def __init__(
        self,
        name: str = "default",
        template: str | None = None,
        path: str | None = None,
        nested: bool = False,
    ) -> None:
        filename, directory = split_log_path(path)

        self.name = name
        self.nested = nested
        self.stream = LoggerStream(
            name=name,
            template=template,
            filename=filename,
            directory=directory,
        )

    async def __aenter__(self) -> LoggerStream:
        await self.stream.initialize()
        return self.stream

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.nested:
            await self.stream.close()
