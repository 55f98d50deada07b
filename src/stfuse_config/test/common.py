# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

__all__ = [
    "SyncTestCase",
    "create_fake_store",

    "skip",
    "skipIf",
    "success_result_of",
]

from unittest import case as _case

from testtools import (
    TestCase,
    skip,
    skipIf,
)
from testtools.twistedsupport import (
    SynchronousDeferredRunTest,
)

from hyperlink import (
    DecodedURL,
)

from twisted.trial.unittest import SynchronousTestCase as _TwistedSynchronousTestCase

from ..client import (
    create_config_api_client,
)
from ..draft import (
    DraftStore,
)
from ..testing.web import (
    create_api_treq_client,
    create_fake_api_root,
)

from .eliotutil import (
    EliotLoggedRunTest,
)


class _TestCaseMixin(object):
    """
    A mixin for ``TestCase`` which collects helpful behaviors for subclasses.

    Those behaviors are:

    * All of the features of testtools TestCase.
    * Each test method will be run in a unique Eliot action context which
      identifies the test and collects all Eliot log messages emitted by that
      test (including setUp and tearDown messages).
    * unittest2-compatible assertRaises helper
    """
    class _DummyCase(_case.TestCase):
        def dummy(self):
            pass
    _dummyCase = _DummyCase("dummy")

    def assertRaises(self, *a, **kw):
        return self._dummyCase.assertRaises(*a, **kw)


class SyncTestCase(_TestCaseMixin, TestCase):
    """
    A ``TestCase`` which can run tests that may return an already-fired
    ``Deferred``.
    """
    run_tests_with = EliotLoggedRunTest.make_factory(
        SynchronousDeferredRunTest,
    )

    # without this method, instantiating a SyncTestCase (or
    # e.g. testtools.TestCase) results in a traceback
    def runTest(self, *a, **kw):
        raise NotImplementedError


# Twisted provides the useful function `successResultOf`, for getting
# the result of an already fired deferred. Unfortunately, it is only
# available as a method on trial's TestCase. Since we don't use that,
# we expose it as a free function here.
_TWISTED_TEST_CASE = _TwistedSynchronousTestCase()
success_result_of = _TWISTED_TEST_CASE.successResultOf


def create_fake_store(config=None, insync=True):
    """
    Create a ``DraftStore`` talking to an in-memory fake of the agent.

    :param Configuration config: what the fake agent has stored, or
        ``None`` for an empty configuration.

    :returns: a two-tuple of the fake API root (to inspect ``.posted``,
        ``.config`` and so on) and the ``DraftStore``.
    """
    root = create_fake_api_root(
        None if config is None else config.to_json(),
        insync,
    )
    client = create_config_api_client(
        DecodedURL.from_text(u"http://invalid./api/"),
        create_api_treq_client(root),
    )
    return root, DraftStore(client)
