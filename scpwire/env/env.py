from typing import Callable, Dict, Literal, Union

from pydantic import BaseModel, StrictInt, StrictStr

PrimaryType = Union[str, int, float, bytes, bool]


class Env(BaseModel):
    SCP_BINARY: StrictStr = "scp"
    SCP_BLOCK_SIZE: StrictInt = 256 * 1024
    SCP_LOG_LEVEL: StrictStr = "info"
    SCP_LOG_OUTPUT: Literal["stdout", "stderr"] = "stderr"
    SCP_LOG_DIRECTORY: StrictStr | None = None
    SCP_CONNECT_TIMEOUT: float | None = None

    @classmethod
    def types_map(self) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "SCP_BINARY": str,
            "SCP_BLOCK_SIZE": int,
            "SCP_LOG_LEVEL": str,
            "SCP_LOG_OUTPUT": str,
            "SCP_LOG_DIRECTORY": str,
            "SCP_CONNECT_TIMEOUT": float,
        }
