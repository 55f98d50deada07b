# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Errors raised by the configuration draft and its editors.

Transport-level problems (the API can't be reached, or answered with a
failure code) are in ``stfuse_config.client``.
"""

import attr


class ConfigEditorError(Exception):
    """
    Base class for all errors in the configuration editor.
    """


@attr.s(auto_exc=True, str=False)
class NotFound(ConfigEditorError):
    """
    A device or folder lookup found nothing.

    :ivar str kind: "device" or "folder"
    :ivar str identity: the device-ID or folder-ID looked up
    """
    kind = attr.ib()
    identity = attr.ib()

    def __str__(self):
        return "No {} '{}' in the configuration".format(self.kind, self.identity)


@attr.s(auto_exc=True, str=False)
class AmbiguousLookup(ConfigEditorError):
    """
    A device or folder lookup found more than one match. This means the
    configuration is corrupt; it is never a normal outcome.
    """
    kind = attr.ib()
    identity = attr.ib()
    count = attr.ib()

    def __str__(self):
        return "Found {} entries for {} '{}'".format(
            self.count,
            self.kind,
            self.identity,
        )


@attr.s(auto_exc=True, str=False)
class ValidationRejected(ConfigEditorError):
    """
    A candidate value for a field was found invalid. The user can fix
    this by correcting the input.

    :ivar str field: name of the field that was rejected
    :ivar candidate: the rejected value
    :ivar str reason: human-readable explanation
    """
    field = attr.ib()
    candidate = attr.ib()
    reason = attr.ib(default="invalid value")

    def __str__(self):
        return "Invalid {}: {} ({!r})".format(self.field, self.reason, self.candidate)


@attr.s(auto_exc=True, str=False)
class DecodeError(ValidationRejected):
    """
    A JSON document from the API did not have the expected shape.
    ``field`` is the dotted path into the document.
    """


@attr.s(auto_exc=True, str=False)
class PersistenceFailure(ConfigEditorError):
    """
    Submitting the configuration to the API failed. The in-memory draft
    still contains the edit.

    :ivar Exception cause: the underlying client error
    """
    cause = attr.ib()

    def __str__(self):
        return "Saving the configuration failed: {}".format(self.cause)


@attr.s(auto_exc=True, str=False)
class EditInProgress(ConfigEditorError):
    """
    Another editor is already staging an edit on this draft.
    """
    editor = attr.ib()

    def __str__(self):
        return "An edit is already in progress in {}".format(type(self.editor).__name__)


@attr.s(auto_exc=True, str=False)
class InvalidEditorState(ConfigEditorError):
    """
    An editor operation was attempted from a state where it isn't allowed
    (for example deleting an entity that was never committed).
    """
    operation = attr.ib()
    state = attr.ib()

    def __str__(self):
        return "Can't {} while {}".format(self.operation, self.state)
