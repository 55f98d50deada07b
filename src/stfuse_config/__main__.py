# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

from .cli import _entry

if __name__ == '__main__':
    _entry()
