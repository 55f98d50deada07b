# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Editors for the devices and folders of a draft configuration.

An editor stages a copy of one entity (plus form-only state, such as
the comma-separated address string or the membership check-boxes) in a
``DeviceDraft`` or ``FolderDraft``. Nothing in the draft configuration
changes until ``commit()``, which applies the whole edit at once and
then saves the configuration.
"""

from copy import (
    deepcopy,
)

from eliot import (
    start_action,
)

import attr

from .error import (
    InvalidEditorState,
    NotFound,
    ValidationRejected,
)
from .membership import (
    apply_device_selection,
    rebuild_folder_members,
    remove_device_edges,
    selected_devices_for,
    selected_folders_for,
)
from .model import (
    COMPRESSION_METADATA,
    DEFAULT_CACHE_SIZE,
    DYNAMIC_ADDRESS,
    Device,
    Folder,
)
from .validation import (
    device_id_validator,
    human_size_validator,
)


class EditorState(object):
    IDLE = u"idle"
    STAGING_NEW = u"staging-new"
    STAGING_EXISTING = u"staging-existing"
    COMMITTED = u"committed"
    DISCARDED = u"discarded"
    DELETED = u"deleted"

    STAGING = (STAGING_NEW, STAGING_EXISTING)


@attr.s
class DeviceDraft(object):
    """
    A device being edited.

    :ivar Device device: private copy of the device

    :ivar str addresses_str: the addresses as the user types them,
        separated by commas

    :ivar dict[str, bool] selected_folders: folder-ID -> should this
        device share the folder. Folders not mentioned are left as they
        are.

    :ivar original_id: the device-ID the stored device had when editing
        began, or ``None`` for a new device
    """
    device = attr.ib(validator=attr.validators.instance_of(Device))
    addresses_str = attr.ib(default=DYNAMIC_ADDRESS)
    selected_folders = attr.ib(factory=dict)
    original_id = attr.ib(default=None)

    def parsed_addresses(self):
        return [address.strip() for address in self.addresses_str.split(u",")]


@attr.s
class FolderDraft(object):
    """
    A folder being edited.

    :ivar Folder folder: private copy of the folder

    :ivar dict[str, bool] selected_devices: device-ID -> should the device
        share this folder. This replaces the folder's member list on
        commit.

    :ivar original_id: the ID the stored folder had when editing began,
        or ``None`` for a new folder
    """
    folder = attr.ib(validator=attr.validators.instance_of(Folder))
    selected_devices = attr.ib(factory=dict)
    original_id = attr.ib(default=None)


def _index_of(items, predicate):
    for idx, item in enumerate(items):
        if predicate(item):
            return idx
    return -1


@attr.s
class _EntityEditor(object):
    """
    The state machine shared by both editors.

    :ivar DraftStore store: the draft being edited
    """
    store = attr.ib(repr=False)
    state = attr.ib(init=False, default=EditorState.IDLE)
    current = attr.ib(init=False, default=None)

    @property
    def editing_existing(self):
        return self.state == EditorState.STAGING_EXISTING

    def _stage(self, state, draft):
        self.store.claim(self)
        self.state = state
        self.current = draft
        return draft

    def _finish(self, state):
        self.state = state
        self.store.release(self)

    def _require_state(self, operation, *states):
        if self.state not in states:
            raise InvalidEditorState(operation, self.state)

    def discard(self):
        """
        Throw the staged edit away. The draft is not touched.
        """
        self._require_state(u"discard", *EditorState.STAGING)
        self._finish(EditorState.DISCARDED)


@attr.s
class DeviceEditor(_EntityEditor):
    """
    Adds, edits and removes devices.

    Committing changes the device's membership in exactly the folders
    mentioned by ``selected_folders``; other devices' memberships keep
    their order.
    """
    device_id_field = attr.ib(init=False, repr=False)

    @device_id_field.default
    def _device_id_field(self):
        return device_id_validator(self.store, lambda: self.editing_existing)

    def begin_add(self):
        """
        Start adding a new device.

        :returns DeviceDraft:
        """
        self.device_id_field.reset()
        return self._stage(
            EditorState.STAGING_NEW,
            DeviceDraft(
                device=Device(
                    device_id=u"",
                    compression=COMPRESSION_METADATA,
                    introducer=False,
                ),
                addresses_str=DYNAMIC_ADDRESS,
                selected_folders={},
            ),
        )

    def begin_edit(self, device):
        """
        Start editing a copy of ``device``.

        :raise NotFound: if the draft doesn't contain ``device``

        :returns DeviceDraft:
        """
        existing = self.store.find_device(device.device_id)
        if existing is None:
            raise NotFound(u"device", device.device_id)
        self.device_id_field.reset()
        staged = deepcopy(existing)
        return self._stage(
            EditorState.STAGING_EXISTING,
            DeviceDraft(
                device=staged,
                addresses_str=u", ".join(staged.addresses),
                selected_folders=selected_folders_for(self.store.config, staged.device_id),
                original_id=existing.device_id,
            ),
        )

    def validate(self):
        """
        Validate the staged device-ID.

        :returns Deferred[FieldValidity]:
        """
        self._require_state(u"validate", *EditorState.STAGING)
        return self.device_id_field.validate(self.current.device.device_id)

    def commit(self):
        """
        Put the staged device into the draft, update folder membership and
        save.

        :raise ValidationRejected: if a new device's ID hasn't been
            validated successfully, or an existing device's ID was
            changed. Nothing is changed in that case.

        :returns Deferred[None]: the result of saving
        """
        self._require_state(u"commit", *EditorState.STAGING)
        draft = self.current
        device = draft.device
        config = self.store.config
        is_new = self.state == EditorState.STAGING_NEW

        if is_new:
            self.device_id_field.state.require(device.device_id)
            idx = -1
        else:
            if device.device_id != draft.original_id:
                raise ValidationRejected(
                    u"deviceID",
                    device.device_id,
                    u"the ID of an existing device can't change",
                )
            idx = _index_of(config.devices, lambda d: d.device_id == draft.original_id)
            if idx == -1:
                raise NotFound(u"device", draft.original_id)

        with start_action(
            action_type=u"stfuse-config:editor:commit-device",
            device_id=device.device_id,
            new=is_new,
        ) as action:
            device.addresses = draft.parsed_addresses()
            stored = deepcopy(device)
            if is_new:
                config.devices.append(stored)
                config.devices.sort(key=lambda d: d.device_id)
            else:
                config.devices[idx] = stored
            changed = apply_device_selection(config, stored.device_id, draft.selected_folders)
            action.add_success_fields(folders_changed=changed)
        self._finish(EditorState.COMMITTED)
        return self.store.save()

    def delete(self):
        """
        Remove the device being edited from every folder and from the
        draft, then save.

        :returns Deferred[None]: the result of saving
        """
        self._require_state(u"delete", EditorState.STAGING_EXISTING)
        device_id = self.current.original_id
        config = self.store.config
        idx = _index_of(config.devices, lambda d: d.device_id == device_id)
        if idx == -1:
            raise NotFound(u"device", device_id)

        with start_action(
            action_type=u"stfuse-config:editor:delete-device",
            device_id=device_id,
        ) as action:
            changed = remove_device_edges(config, device_id)
            del config.devices[idx]
            action.add_success_fields(folders_changed=changed)
        self._finish(EditorState.DELETED)
        return self.store.save()


@attr.s
class FolderEditor(_EntityEditor):
    """
    Adds, edits and removes folders.

    Committing replaces the folder's member list with the devices marked
    in ``selected_devices``, in device order.
    """
    cache_size_field = attr.ib(init=False, repr=False)

    @cache_size_field.default
    def _cache_size_field(self):
        return human_size_validator(self.store.client)

    def begin_add(self):
        """
        Start adding a new folder.

        :returns FolderDraft:
        """
        self.cache_size_field.reset()
        return self._stage(
            EditorState.STAGING_NEW,
            FolderDraft(
                folder=Folder(id=u"", cache_size=DEFAULT_CACHE_SIZE),
                selected_devices={},
            ),
        )

    def begin_edit(self, folder):
        """
        Start editing a copy of ``folder``.

        :raise NotFound: if the draft doesn't contain ``folder``

        :returns FolderDraft:
        """
        existing = self.store.find_folder(folder.id)
        if existing is None:
            raise NotFound(u"folder", folder.id)
        self.cache_size_field.reset()
        staged = deepcopy(existing)
        return self._stage(
            EditorState.STAGING_EXISTING,
            FolderDraft(
                folder=staged,
                selected_devices=selected_devices_for(staged),
                original_id=existing.id,
            ),
        )

    def validate(self):
        """
        Validate the staged cache size.

        :returns Deferred[FieldValidity]:
        """
        self._require_state(u"validate", *EditorState.STAGING)
        return self.cache_size_field.validate(self.current.folder.cache_size)

    def commit(self):
        """
        Put the staged folder into the draft and save.

        :raise ValidationRejected: if the cache size hasn't been validated
            successfully, a new folder's ID is empty or already used, or
            an existing folder's ID was changed. Nothing is changed in
            that case.

        :returns Deferred[None]: the result of saving
        """
        self._require_state(u"commit", *EditorState.STAGING)
        draft = self.current
        folder = draft.folder
        config = self.store.config
        is_new = self.state == EditorState.STAGING_NEW

        self.cache_size_field.state.require(folder.cache_size)
        if is_new:
            if not folder.id:
                raise ValidationRejected(u"id", folder.id, u"a folder ID is required")
            if self.store.find_folder(folder.id) is not None:
                raise ValidationRejected(u"id", folder.id, u"the folder already exists")
            idx = -1
        else:
            if folder.id != draft.original_id:
                raise ValidationRejected(
                    u"id",
                    folder.id,
                    u"the ID of an existing folder can't change",
                )
            idx = _index_of(config.folders, lambda f: f.id == draft.original_id)
            if idx == -1:
                raise NotFound(u"folder", draft.original_id)

        with start_action(
            action_type=u"stfuse-config:editor:commit-folder",
            folder_id=folder.id,
            new=is_new,
        ) as action:
            stored = deepcopy(folder)
            stored.devices = rebuild_folder_members(config, draft.selected_devices)
            if is_new:
                config.folders.append(stored)
            else:
                config.folders[idx] = stored
            config.folders.sort(key=lambda f: f.id)
            action.add_success_fields(members=len(stored.devices))
        self._finish(EditorState.COMMITTED)
        return self.store.save()

    def delete(self):
        """
        Remove the folder being edited from the draft, then save.

        :returns Deferred[None]: the result of saving
        """
        self._require_state(u"delete", EditorState.STAGING_EXISTING)
        folder_id = self.current.original_id
        config = self.store.config
        idx = _index_of(config.folders, lambda f: f.id == folder_id)
        if idx == -1:
            raise NotFound(u"folder", folder_id)

        with start_action(
            action_type=u"stfuse-config:editor:delete-folder",
            folder_id=folder_id,
        ):
            del config.folders[idx]
        self._finish(EditorState.DELETED)
        return self.store.save()
