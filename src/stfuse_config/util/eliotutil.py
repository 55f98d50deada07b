# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Eliot logging fields, message types and command-line helpers.
"""

import json
import os

from eliot import (
    Action,
    Field,
    FileDestination,
    MessageType,
    ValidationError,
    add_destinations,
    remove_destination,
    start_task,
)

from twisted.python import usage
from twisted.application.service import Service

import attr


def validateSetMembership(s):
    """
    Return an Eliot validator that requires values to be elements of ``s``.
    """
    def validator(v):
        if v not in s:
            raise ValidationError("{} not in {}".format(v, s))
    return validator


DEVICE_ID = Field.for_types(
    u"device_id",
    [str],
    u"The device-ID of a device in the configuration.",
)

FOLDER_ID = Field.for_types(
    u"folder_id",
    [str],
    u"The ID of a folder in the configuration.",
)

ENTITY_KIND = Field(
    u"kind",
    lambda kind: kind,
    u"The kind of configuration entity.",
    validateSetMembership({u"device", u"folder"}),
)

IDENTITY = Field.for_types(
    u"identity",
    [str],
    u"The identity (device-ID or folder-ID) of a configuration entity.",
)

COUNT = Field.for_types(
    u"count",
    [int],
    u"How many entries were found.",
)

AMBIGUOUS_LOOKUP = MessageType(
    u"stfuse-config:draft:ambiguous-lookup",
    [ENTITY_KIND, IDENTITY, COUNT],
    u"A lookup by identity found more than one entity; the configuration is corrupt.",
)

SAVED = MessageType(
    u"stfuse-config:persistence:saved",
    [],
    u"The agent accepted the configuration; the draft is no longer known to be in sync.",
)

STALE_VALIDATION = MessageType(
    u"stfuse-config:validation:stale-result",
    [Field.for_types(u"field", [str], u"The validated field.")],
    u"A validation result arrived for a request that has since been superseded.",
)


def opt_eliot_fd(self, fd):
    """
    File descriptor to send log eliot to.
    """
    try:
        fd = int(fd)
    except Exception as e:
        raise usage.UsageError(str(e))

    stdio_fds = {
        1: self.stdout,
        2: self.stderr,
    }

    def to_fd(reactor):
        f = stdio_fds.get(fd)
        if f is None:
            f = os.fdopen(fd, "w")
        return FileDestination(f)

    self.setdefault("eliot-destinations", []).append(to_fd)


def opt_eliot_task_fields(self, task_fields):
    """
    Wrap all logs in a task with given (JSON) fields. (for testing)
    """
    try:
        task_fields = json.loads(task_fields)
    except Exception as e:
        raise usage.UsageError(str(e))
    self.setdefault("eliot-task-fields", {}).update(task_fields)


def with_eliot_options(cls):
    cls.opt_eliot_fd = opt_eliot_fd
    cls.opt_eliot_task_fields = opt_eliot_task_fields
    return cls


def maybe_enable_eliot_logging(options):
    destinations = options.get("eliot-destinations")
    task_fields = options.get("eliot-task-fields")
    if not destinations:
        return
    from twisted.internet import reactor

    destinations = [destination(reactor) for destination in destinations]
    service = _EliotLogging(destinations, task_fields)
    service.startService()
    reactor.addSystemEventTrigger("after", "shutdown", service.stopService)


@attr.s
class _EliotLogging(Service):
    """
    A service which adds Eliot destinations while it is running.

    :ivar list[eliot.IDestination] destinations: The Eliot destinations
        which are added by this service.
    """

    destinations = attr.ib()
    task_fields = attr.ib(
        default=None,
        validator=attr.validators.optional(attr.validators.instance_of(dict))
    )
    task = attr.ib(
        init=False,
        default=None,
        validator=attr.validators.optional(attr.validators.instance_of(Action)),
    )

    def startService(self):
        if self.task_fields:
            self.task = start_task(**self.task_fields)
            self.task.__enter__()
        add_destinations(*self.destinations)
        return Service.startService(self)

    def stopService(self):
        if self.task is not None:
            self.task.finish()
        for dest in self.destinations:
            remove_destination(dest)
        return Service.stopService(self)
