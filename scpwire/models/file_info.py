from __future__ import annotations

import os
import stat

from pydantic import (
    BaseModel,
    ConfigDict,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
)


class FileInfo(BaseModel):
    name: StrictStr
    size: StrictInt = 0
    mode: StrictInt
    mtime: StrictInt | StrictFloat
    atime: StrictInt | StrictFloat

    model_config = ConfigDict(frozen=True)

    @field_validator('name')
    @classmethod
    def validate_name(cls, name: str) -> str:
        if not name or '/' in name or name in ('.', '..'):
            raise ValueError(f'{name!r} is not a base name')

        return name

    @classmethod
    def from_stat(
        cls,
        name: str,
        st: os.stat_result,
    ) -> FileInfo:
        is_dir = stat.S_ISDIR(st.st_mode)

        return cls(
            name=name,
            size=0 if is_dir else st.st_size,
            mode=st.st_mode,
            mtime=st.st_mtime,
            atime=st.st_atime,
        )

    @classmethod
    def from_path(
        cls,
        path: str,
        name: str | None = None,
    ) -> FileInfo:
        if name is None:
            name = os.path.basename(os.path.normpath(path))

        return cls.from_stat(name, os.stat(path))

    @classmethod
    def for_directory(
        cls,
        name: str,
        permissions: int,
        mtime: int | float,
        atime: int | float,
    ) -> FileInfo:
        return cls(
            name=name,
            size=0,
            mode=stat.S_IFDIR | permissions,
            mtime=mtime,
            atime=atime,
        )

    @classmethod
    def for_file(
        cls,
        name: str,
        size: int,
        permissions: int,
        mtime: int | float,
        atime: int | float,
    ) -> FileInfo:
        return cls(
            name=name,
            size=size,
            mode=stat.S_IFREG | permissions,
            mtime=mtime,
            atime=atime,
        )

    def renamed(self, name: str) -> FileInfo:
        """Copy with a new name, validated like any other"""
        return self.model_validate({**self.model_dump(), 'name': name})

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def permissions(self) -> int:
        return stat.S_IMODE(self.mode)
