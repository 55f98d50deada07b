# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Pushing the draft configuration back to the agent.
"""

from eliot import (
    start_action,
)
from eliot.twisted import (
    inline_callbacks,
)

from twisted.internet.defer import (
    CancelledError,
)
from twisted.internet.error import (
    ConnectError,
    DNSLookupError,
)
from twisted.web.client import (
    RequestTransmissionFailed,
    ResponseFailed,
    ResponseNeverReceived,
)

import attr

from .client import (
    ClientError,
)
from .error import (
    PersistenceFailure,
)
from .util.eliotutil import (
    SAVED,
)

# What post_config fails with when the agent, or the way to it, is at
# fault.
_SAVE_FAILURES = (
    ClientError,
    ConnectError,
    DNSLookupError,
    CancelledError,
    RequestTransmissionFailed,
    ResponseFailed,
    ResponseNeverReceived,
)


@attr.s
class PersistenceGateway(object):
    """
    Sends the whole draft to the agent.

    Saving is fire-and-forget: even a successful save leaves the draft
    marked as not in sync, because only a fresh load can confirm that
    the agent really runs with what we sent.

    :ivar DraftContext context: the draft being saved

    :ivar client: a ``ConfigApiClient``
    """
    context = attr.ib()
    client = attr.ib()
    _observers = attr.ib(init=False, factory=list)

    def observe_saved(self, callback):
        """
        Call ``callback()`` after every successful save. The presentation
        layer uses this to reset its scroll position and focus.

        :returns: a no-argument callable which removes the observer
        """
        self._observers.append(callback)
        return lambda: self._observers.remove(callback)

    @inline_callbacks
    def save(self):
        """
        Serialize the draft and submit it.

        :raise PersistenceFailure: (asynchronously) if the agent didn't
            accept it or couldn't be reached. The draft and ``synced``
            are left as they were.

        :returns Deferred[None]:
        """
        config = self.context.config
        with start_action(
            action_type=u"stfuse-config:persistence:save",
            devices=len(config.devices),
            folders=len(config.folders),
        ):
            try:
                yield self.client.post_config(config)
            except _SAVE_FAILURES as e:
                raise PersistenceFailure(e)
            self.context.synced = False
            SAVED.log()
        for callback in list(self._observers):
            callback()
