import inspect
from typing import Awaitable, Callable

from scpwire.errors import FilterError
from scpwire.models import FileInfo


AcceptFn = Callable[[str, FileInfo], bool | Awaitable[bool]]


async def evaluate(
    accept: AcceptFn | None,
    parent_dir: str,
    info: FileInfo,
    path: str,
) -> bool:
    """Run the accept function, which may be sync or async"""

    if accept is None:
        return True

    try:
        result = accept(parent_dir, info)

        if inspect.isawaitable(result):
            result = await result

    except Exception as err:
        raise FilterError(f'accept function failed ({err})', path) from err

    return bool(result)
