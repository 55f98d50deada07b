# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

__version__ = "0.1.0"
