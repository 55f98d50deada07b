# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
The in-memory working copy ("draft") of an agent's configuration.
"""

from eliot import (
    start_action,
    write_traceback,
)
from eliot.twisted import (
    inline_callbacks,
)

from twisted.internet.defer import (
    returnValue,
)

import attr

from .error import (
    AmbiguousLookup,
    EditInProgress,
)
from .model import (
    Configuration,
)
from .persistence import (
    PersistenceGateway,
)
from .util.eliotutil import (
    AMBIGUOUS_LOOKUP,
)


@attr.s
class DraftContext(object):
    """
    The mutable state shared by everything editing one agent's
    configuration.

    :ivar Configuration config: the working draft

    :ivar bool synced: ``True`` if the draft is believed to match what
        the agent has stored. Only a fresh load makes this ``True``.
    """
    config = attr.ib(
        factory=lambda: Configuration(my_id=u""),
        validator=attr.validators.instance_of(Configuration),
    )
    synced = attr.ib(default=False, validator=attr.validators.instance_of(bool))


def _unique(kind, identity, matches):
    """
    :returns: the single element of ``matches`` or ``None``

    :raise AmbiguousLookup: if there is more than one
    """
    if len(matches) > 1:
        AMBIGUOUS_LOOKUP.log(kind=kind, identity=identity, count=len(matches))
        raise AmbiguousLookup(kind, identity, len(matches))
    if matches:
        return matches[0]
    return None


@attr.s
class DraftStore(object):
    """
    Holds the draft configuration of one agent and gives read access to
    it. All changes go through the editors in ``stfuse_config.editors``.

    :ivar ConfigApiClient client: how we talk to the agent
    """
    client = attr.ib()
    context = attr.ib(factory=DraftContext, validator=attr.validators.instance_of(DraftContext))
    persistence = attr.ib(default=None)

    # the editor currently staging an edit, if any
    _staging = attr.ib(init=False, default=None, repr=False)

    def __attrs_post_init__(self):
        if self.persistence is None:
            self.persistence = PersistenceGateway(self.context, self.client)

    @property
    def config(self):
        return self.context.config

    @property
    def synced(self):
        return self.context.synced

    @inline_callbacks
    def load(self):
        """
        Replace the draft with the agent's current configuration.

        :returns Deferred[Configuration]: the new draft
        """
        with start_action(action_type=u"stfuse-config:draft:load") as action:
            config = yield self.client.get_config()
            config.sort()
            self.context.config = config
            self.context.synced = True
            try:
                insync = yield self.client.get_config_insync()
            except Exception:
                # the configuration itself loaded fine
                write_traceback()
            else:
                self.context.synced = insync
            action.add_success_fields(
                devices=len(config.devices),
                folders=len(config.folders),
                synced=self.context.synced,
            )
        returnValue(config)

    def save(self):
        """
        Send the whole draft to the agent.

        :returns Deferred[None]: see ``PersistenceGateway.save``
        """
        return self.persistence.save()

    def find_device(self, device_id):
        """
        :returns Device: the device with the given ID, or ``None``

        :raise AmbiguousLookup: if the draft has more than one
        """
        return _unique(
            u"device",
            device_id,
            [d for d in self.config.devices if d.device_id == device_id],
        )

    def find_folder(self, folder_id):
        """
        :returns Folder: the folder with the given ID, or ``None``

        :raise AmbiguousLookup: if the draft has more than one
        """
        return _unique(
            u"folder",
            folder_id,
            [f for f in self.config.folders if f.id == folder_id],
        )

    def this_device(self):
        """
        :returns Device: the local device, or ``None`` if the draft doesn't
            contain it yet.
        """
        for device in self.config.devices:
            if device.device_id == self.config.my_id:
                return device
        return None

    def other_devices(self):
        """
        :returns list[Device]: every device except the local one, in
            draft order.
        """
        return [
            device
            for device in self.config.devices
            if device.device_id != self.config.my_id
        ]

    def display_name(self, device):
        if device is None:
            return u""
        if device.name:
            return device.name
        return device.device_id[:6]

    def shares_folder(self, folder):
        """
        :returns str: the sorted, comma-separated display names of the
            devices (other than us) sharing ``folder``.
        """
        names = []
        for ref in folder.devices:
            if ref.device_id == self.config.my_id:
                continue
            device = self.find_device(ref.device_id)
            if device is None:
                continue
            names.append(self.display_name(device))
        return u", ".join(sorted(names))

    def claim(self, editor):
        """
        Mark ``editor`` as the one staging an edit.

        :raise EditInProgress: if another editor already is.
        """
        if self._staging is not None and self._staging is not editor:
            raise EditInProgress(self._staging)
        self._staging = editor

    def release(self, editor):
        if self._staging is editor:
            self._staging = None
