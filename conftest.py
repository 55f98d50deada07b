# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
pytest discovery settings.

Test modules import the ``SyncTestCase`` base class from ``test.common``.
pytest would otherwise collect that imported base class in every module and
run its placeholder ``runTest``.  Only collect ``TestCase`` classes in the
module that defines them.
"""

import inspect
import unittest


def pytest_pycollect_makeitem(collector, name, obj):
    if (
        inspect.isclass(obj)
        and issubclass(obj, unittest.TestCase)
        and obj.__module__ != collector.module.__name__
    ):
        return []
    return None
