# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Folding device/folder selection maps into folder membership lists.

Membership is stored only on folders (``Folder.devices``). The editors
present it as a selection map instead: folder-ID -> bool for a device,
or device-ID -> bool for a folder. The two editors fold their map back
in differently:

* the folder editor owns the whole member list of one folder, so it
  rebuilds that list from scratch (``rebuild_folder_members``);

* the device editor touches one device's edge in many folders, so it
  only adds or removes that edge and leaves every other edge where it
  was (``apply_device_selection``).
"""

from .model import (
    FolderDeviceRef,
)


def _edge_index(folder, device_id):
    for idx, ref in enumerate(folder.devices):
        if ref.device_id == device_id:
            return idx
    return -1


def selected_folders_for(config, device_id):
    """
    :returns dict[str, bool]: ``True`` for every folder ``device_id`` is a
        member of. Other folders are absent.
    """
    return {
        folder.id: True
        for folder in config.folders
        if folder.has_member(device_id)
    }


def selected_devices_for(folder):
    """
    :returns dict[str, bool]: ``True`` for every member of ``folder``.
    """
    return {ref.device_id: True for ref in folder.devices}


def rebuild_folder_members(config, selected_devices):
    """
    Compute a folder's new member list from a selection map.

    Members come out in the order of ``config.devices``; anything the
    previous edges carried beyond the device-ID is dropped.

    :param Configuration config: the draft

    :param dict[str, bool] selected_devices: device-ID -> member?

    :returns list[FolderDeviceRef]:
    """
    return [
        FolderDeviceRef(device_id=device.device_id)
        for device in config.devices
        if selected_devices.get(device.device_id)
    ]


def apply_device_selection(config, device_id, selected_folders):
    """
    Add or remove ``device_id``'s edge in each folder of ``config``.

    A folder whose entry is true gains an edge if it has none. A folder
    whose entry is explicitly ``False`` loses its edge if it has one.
    Folders missing from ``selected_folders`` are left alone, as are all
    other devices' edges.

    :returns list[str]: IDs of the folders that changed
    """
    changed = []
    for folder in config.folders:
        idx = _edge_index(folder, device_id)
        selected = selected_folders.get(folder.id)
        if idx == -1 and selected:
            folder.devices = folder.devices + [FolderDeviceRef(device_id=device_id)]
            changed.append(folder.id)
        elif idx != -1 and selected is False:
            folder.devices = folder.devices[:idx] + folder.devices[idx + 1:]
            changed.append(folder.id)
    return changed


def remove_device_edges(config, device_id):
    """
    Remove ``device_id`` from every folder it is a member of. Nothing is
    added, and every other edge keeps its place.

    :returns list[str]: IDs of the folders that changed
    """
    changed = []
    for folder in config.folders:
        remaining = [ref for ref in folder.devices if ref.device_id != device_id]
        if len(remaining) != len(folder.devices):
            folder.devices = remaining
            changed.append(folder.id)
    return changed
