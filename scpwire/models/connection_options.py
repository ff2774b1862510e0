import pathlib
from typing import Any

from pydantic import (
    BaseModel,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
)


class ConnectionOptions(BaseModel):
    host: StrictStr
    port: StrictInt = 22
    username: StrictStr | None = None
    password: StrictStr | None = None
    client_keys: list[StrictStr | pathlib.Path] | None = None
    known_hosts: StrictStr | pathlib.Path | list[StrictStr] | None = None
    disable_host_check: StrictBool = False
    connect_timeout: StrictInt | StrictFloat | None = None
    login_timeout: StrictInt | StrictFloat | None = None
    keepalive_interval: StrictInt | StrictFloat | None = None

    def to_dict(self) -> dict[str, Any]:
        options = self.model_dump(
            exclude={
                'host',
                'port',
                'known_hosts',
                'disable_host_check',
            },
            exclude_none=True,
        )

        if self.disable_host_check:
            options['known_hosts'] = None

        elif self.known_hosts is not None:
            options['known_hosts'] = self.known_hosts

        return options
