import os
from typing import Dict, TypeVar

from dotenv import dotenv_values

from .env import Env, PrimaryType


T = TypeVar("T", bound=Env)


def load_env(
    default: type[T],
    env_file: str | None = None,
    override: T | None = None,
) -> T:
    """Build settings from the process environment, a dotenv file and overrides

    Later sources win: values in env_file (default ``.env`` in the working
    directory) replace process variables, and fields explicitly set on
    override replace both. Unknown names are ignored.
    """

    converters = default.types_map()

    if env_file is None:
        env_file = ".env"

    values: Dict[str, PrimaryType] = {
        name: convert(os.environ[name])
        for name, convert in converters.items()
        if os.environ.get(name)
    }

    if os.path.exists(env_file):
        for name, raw_value in dotenv_values(dotenv_path=env_file).items():
            convert = converters.get(name)

            if convert and raw_value is not None:
                values[name] = convert(raw_value)

    settings_type = default

    if override is not None:
        settings_type = type(override)
        values.update(override.model_dump(exclude_unset=True, exclude_none=True))

    return settings_type(**values)
