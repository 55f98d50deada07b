# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Asynchronous validation of form fields against the agent.

A field may be validated many times while the user types, and the
answers can come back in any order. ``FieldValidator`` numbers every
request; only the answer to the most recently issued one is allowed to
change the field's validity. Older requests are cancelled and anything
they produce anyway is ignored.
"""

from functools import (
    partial,
)

from eliot import (
    start_action,
    write_failure,
)
from eliot.twisted import (
    DeferredContext,
    inline_callbacks,
)

from twisted.internet.defer import (
    CancelledError,
    Deferred,
    maybeDeferred,
    returnValue,
    succeed,
)

import attr

from .client import (
    CannotAccessAPIError,
    ClientError,
    ConfigApiError,
)
from .error import (
    ValidationRejected,
)
from .util.eliotutil import (
    STALE_VALIDATION,
)


@attr.s(frozen=True)
class FieldValidity(object):
    """
    What is known about the validity of one field.

    :ivar str field: name of the field

    :ivar candidate: the value the most recent request was about, or
        ``None`` if nothing has been validated yet.

    :ivar bool pending: ``True`` while the most recent request is in flight

    :ivar valid: ``True`` / ``False`` once the most recent request has
        settled, ``None`` before that.

    :ivar str reason: why the candidate is invalid
    """
    field = attr.ib()
    candidate = attr.ib(default=None)
    pending = attr.ib(default=False)
    valid = attr.ib(default=None)
    reason = attr.ib(default=None)

    def require(self, candidate):
        """
        :raise ValidationRejected: unless ``candidate`` is the value that
            was validated and it was found valid.
        """
        if self.pending:
            raise ValidationRejected(self.field, candidate, u"still being validated")
        if self.candidate != candidate or self.valid is None:
            raise ValidationRejected(self.field, candidate, u"not validated")
        if not self.valid:
            raise ValidationRejected(self.field, candidate, self.reason or u"invalid value")


@attr.s
class FieldValidator(object):
    """
    Tracks the validity of one field; the most recently issued request
    wins.

    :ivar str field: name of the field

    :ivar _check: a one-argument callable which receives a candidate and
        returns (possibly via a ``Deferred``) ``None`` if it is valid or a
        ``str`` explaining why it is not.
    """
    field = attr.ib()
    _check = attr.ib()
    state = attr.ib(init=False)
    _generation = attr.ib(init=False, default=0)
    _in_flight = attr.ib(init=False, default=None, repr=False)
    _waiters = attr.ib(init=False, factory=list, repr=False)

    @state.default
    def _initial_state(self):
        return FieldValidity(self.field)

    def validate(self, candidate):
        """
        Start validating ``candidate``, superseding any earlier request.

        :returns Deferred[FieldValidity]: fires once the field has
            settled. If this request is superseded before then, it fires
            with the outcome of the request that superseded it.
        """
        self._generation += 1
        generation = self._generation
        self.state = FieldValidity(self.field, candidate, pending=True)
        self._cancel_in_flight()

        action = start_action(
            action_type=u"stfuse-config:validation:check",
            field=self.field,
            generation=generation,
        )
        with action.context():
            d = maybeDeferred(self._check, candidate)
            ctx = DeferredContext(d)
            ctx.addCallbacks(
                partial(self._settled, generation, candidate),
                partial(self._failed, generation, candidate),
            )
            ctx.addActionFinish()
        # a synchronous check has already settled
        if not d.called:
            self._in_flight = d
        return self.when_settled()

    def when_settled(self):
        """
        :returns Deferred[FieldValidity]: fires with the field's state once
            no request is in flight.
        """
        if not self.state.pending:
            return succeed(self.state)
        d = Deferred()
        self._waiters.append(d)
        return d

    def reset(self):
        """
        Forget everything; any request in flight is cancelled and its
        result ignored.
        """
        self._generation += 1
        self._cancel_in_flight()
        self._set_state(FieldValidity(self.field))

    def _cancel_in_flight(self):
        in_flight, self._in_flight = self._in_flight, None
        if in_flight is not None:
            in_flight.cancel()

    def _settled(self, generation, candidate, reason):
        if generation != self._generation:
            STALE_VALIDATION.log(field=self.field)
            return None
        self._in_flight = None
        self._set_state(
            FieldValidity(
                self.field,
                candidate,
                pending=False,
                valid=reason is None,
                reason=reason,
            )
        )
        return None

    def _failed(self, generation, candidate, failure):
        if generation != self._generation:
            if not failure.check(CancelledError):
                STALE_VALIDATION.log(field=self.field)
            return None
        # the check itself broke; that can't count as valid
        write_failure(failure)
        return self._settled(generation, candidate, str(failure.value))

    def _set_state(self, state):
        self.state = state
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            waiter.callback(state)


@inline_callbacks
def _verify_device_id(client, candidate):
    try:
        error = yield client.verify_device_id(candidate)
    except CannotAccessAPIError as e:
        returnValue(str(e))
    except ClientError as e:
        returnValue(u"the device-ID could not be verified: {}".format(e))
    returnValue(error)


def check_device_id(store, editing_existing, candidate):
    """
    Decide whether ``candidate`` may be used as the ID of a new device.

    :param DraftStore store: the draft the device would be added to

    :param editing_existing: no-argument callable, ``True`` when the
        device being edited already exists; its identity is never
        re-validated.

    :returns: ``None`` or a reason, possibly via a ``Deferred``
    """
    if editing_existing():
        return None
    if not candidate:
        return u"a device-ID is required"
    normalized = candidate.upper()
    for device in store.config.devices:
        if device.device_id == normalized:
            return u"the device {} is already known".format(normalized)
    return _verify_device_id(store.client, candidate)


@inline_callbacks
def _verify_human_size(client, candidate):
    try:
        yield client.verify_human_size(candidate)
    except ConfigApiError:
        returnValue(u"{!r} is not a size".format(candidate))
    except CannotAccessAPIError as e:
        returnValue(str(e))
    returnValue(None)


def check_human_size(client, candidate):
    """
    Decide whether ``candidate`` is a size the agent understands, such as
    "512 MiB". An empty value means "unset" and is always fine.

    :returns: ``None`` or a reason, possibly via a ``Deferred``
    """
    if not candidate:
        return None
    return _verify_human_size(client, candidate)


def device_id_validator(store, editing_existing):
    """
    :returns FieldValidator: for the ``deviceID`` field of a device form
    """
    return FieldValidator(
        u"deviceID",
        partial(check_device_id, store, editing_existing),
    )


def human_size_validator(client, field=u"cacheSize"):
    """
    :returns FieldValidator: for a size field such as ``cacheSize``
    """
    return FieldValidator(
        field,
        partial(check_human_size, client),
    )
