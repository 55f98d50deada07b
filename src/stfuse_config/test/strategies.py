# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Hypothesis strategies useful for testing stfuse-config.
"""

from string import (
    ascii_letters,
    digits,
)

from hypothesis.strategies import (
    booleans,
    builds,
    just,
    lists,
    sampled_from,
    text,
    tuples,
)

from ..model import (
    COMPRESSION_CHOICES,
    Configuration,
    Device,
    Folder,
    FolderDeviceRef,
)

BASE32_ALPHABET = u"ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"


def device_ids():
    """
    Build ``str`` device-IDs the way the agent writes them: 56 upper-case
    base32 characters.
    """
    return text(alphabet=BASE32_ALPHABET, min_size=56, max_size=56)


def folder_ids():
    """
    Build ``str`` folder-IDs.
    """
    return text(alphabet=ascii_letters + digits + u"-_", min_size=1, max_size=20)


def device_names():
    """
    Build display names for devices, possibly empty.
    """
    return text(alphabet=ascii_letters + digits + u" ", max_size=16)


def addresses():
    return sampled_from([
        u"dynamic",
        u"tcp://192.0.2.1:22000",
        u"tcp://198.51.100.7:22001",
        u"tcp://example.invalid:22000",
    ])


def cache_sizes():
    return sampled_from([u"512 MiB", u"1 GiB", u"100 MB", u"102"])


def devices(device_ids=device_ids()):
    """
    Build ``Device`` instances.
    """
    return builds(
        Device,
        device_id=device_ids,
        name=device_names(),
        addresses=lists(addresses(), min_size=1, max_size=3),
        compression=sampled_from(COMPRESSION_CHOICES),
        introducer=booleans(),
    )


def folders(folder_ids=folder_ids(), member_ids=lists(device_ids(), unique=True, max_size=3)):
    """
    Build ``Folder`` instances whose members are drawn from ``member_ids``.
    """
    return builds(
        Folder,
        id=folder_ids,
        devices=member_ids.map(
            lambda ids: [FolderDeviceRef(device_id=i) for i in ids],
        ),
        cache_size=cache_sizes(),
    )


def _configuration_with(ids, fids):
    return builds(
        Configuration,
        my_id=sampled_from(ids),
        devices=tuples(*[devices(just(i)) for i in ids]).map(list),
        folders=tuples(*[
            folders(just(fid), lists(sampled_from(ids), unique=True))
            for fid in fids
        ]).map(list),
    )


def configurations(device_ids=device_ids(), folder_ids=folder_ids()):
    """
    Build consistent ``Configuration`` instances: identities are unique,
    the local device is among the devices, and every folder member is a
    known device. Devices and folders are not sorted.
    """
    return tuples(
        lists(device_ids, unique=True, min_size=1, max_size=6),
        lists(folder_ids, unique=True, max_size=5),
    ).flatmap(
        lambda ids: _configuration_with(*ids),
    )
