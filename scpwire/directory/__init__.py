from .accept import (
    AcceptFn as AcceptFn,
    evaluate as evaluate,
)
from .reconstructor import DirectoryReconstructor as DirectoryReconstructor
from .walker import DirectoryWalker as DirectoryWalker
