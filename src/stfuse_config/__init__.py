# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

__all__ = [
    "__version__",
]

from ._version import (
    __version__,
)
