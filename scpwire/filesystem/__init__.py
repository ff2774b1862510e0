from .local_file import LocalFile as LocalFile
from .local_fs import LocalFS as LocalFS
