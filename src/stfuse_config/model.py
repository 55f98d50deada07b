# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Typed representation of the syncthing-fuse configuration document.

The agent speaks JSON; everything in here converts between that JSON and
``attrs`` instances. Keys we don't model are kept in ``extra`` so that a
load/save round-trip never loses information the agent knows about.
"""

import attr

from .error import (
    DecodeError,
)

COMPRESSION_ALWAYS = "always"
COMPRESSION_METADATA = "metadata"
COMPRESSION_NEVER = "never"
COMPRESSION_CHOICES = (
    COMPRESSION_ALWAYS,
    COMPRESSION_METADATA,
    COMPRESSION_NEVER,
)

DEFAULT_CACHE_SIZE = "512 MiB"
DYNAMIC_ADDRESS = "dynamic"

_MISSING = object()


def _field(data, path, key, types, default):
    """
    Extract ``key`` from the JSON object ``data``.

    A missing key (or a JSON ``null``, which is how the agent encodes an
    empty list) gives ``default``.

    :raise DecodeError: if the value is present but not one of ``types``.
    """
    value = data.get(key, _MISSING)
    if value is _MISSING or value is None:
        return default() if callable(default) else default
    # bool is a subclass of int, but never a valid int here
    if isinstance(value, bool) and bool not in types:
        value_ok = False
    else:
        value_ok = isinstance(value, types)
    if not value_ok:
        raise DecodeError(
            "{}.{}".format(path, key),
            value,
            "expected {}".format(" or ".join(t.__name__ for t in types)),
        )
    return value


def _object(data, path):
    if not isinstance(data, dict):
        raise DecodeError(path, data, "expected an object")
    return data


def _strings(data, path, key, default):
    values = _field(data, path, key, (list,), default)
    for idx, value in enumerate(values):
        if not isinstance(value, str):
            raise DecodeError("{}.{}[{}]".format(path, key, idx), value, "expected str")
    return list(values)


def _required(path):
    """
    A ``default`` for ``_field`` which refuses to provide one: identity
    fields must be present.
    """
    def missing():
        raise DecodeError(path, None, "missing identity")
    return missing


def _extra(data, known):
    return {k: v for k, v in data.items() if k not in known}


def _with_extra(encoded, extra):
    result = dict(extra)
    result.update(encoded)
    return result


@attr.s
class FolderDeviceRef(object):
    """
    One membership edge: the device ``device_id`` shares the folder that
    holds this reference.
    """
    device_id = attr.ib(validator=attr.validators.instance_of(str))
    extra = attr.ib(factory=dict, repr=False)

    _KEYS = ("deviceID",)

    @classmethod
    def from_json(cls, data, path="ref"):
        data = _object(data, path)
        return cls(
            device_id=_field(data, path, "deviceID", (str,), _required(path)),
            extra=_extra(data, cls._KEYS),
        )

    def to_json(self):
        return _with_extra({"deviceID": self.device_id}, self.extra)


@attr.s
class Device(object):
    """
    A device known to this node.
    """
    device_id = attr.ib(validator=attr.validators.instance_of(str))
    name = attr.ib(default="", validator=attr.validators.instance_of(str))
    addresses = attr.ib(factory=lambda: [DYNAMIC_ADDRESS])
    compression = attr.ib(
        default=COMPRESSION_METADATA,
        validator=attr.validators.in_(COMPRESSION_CHOICES),
    )
    introducer = attr.ib(default=False, validator=attr.validators.instance_of(bool))
    extra = attr.ib(factory=dict, repr=False)

    _KEYS = ("deviceID", "name", "addresses", "compression", "introducer")

    @classmethod
    def from_json(cls, data, path="device"):
        data = _object(data, path)
        compression = _field(data, path, "compression", (str,), COMPRESSION_METADATA)
        if compression not in COMPRESSION_CHOICES:
            raise DecodeError(
                "{}.compression".format(path),
                compression,
                "expected one of {}".format(", ".join(COMPRESSION_CHOICES)),
            )
        return cls(
            device_id=_field(data, path, "deviceID", (str,), _required(path)),
            name=_field(data, path, "name", (str,), ""),
            addresses=_strings(data, path, "addresses", lambda: [DYNAMIC_ADDRESS]),
            compression=compression,
            introducer=_field(data, path, "introducer", (bool,), False),
            extra=_extra(data, cls._KEYS),
        )

    def to_json(self):
        return _with_extra(
            {
                "deviceID": self.device_id,
                "name": self.name,
                "addresses": list(self.addresses),
                "compression": self.compression,
                "introducer": self.introducer,
            },
            self.extra,
        )


@attr.s
class Folder(object):
    """
    A folder replicated by this node. ``devices`` is the canonical
    storage of folder membership.
    """
    id = attr.ib(validator=attr.validators.instance_of(str))
    devices = attr.ib(factory=list)
    cache_size = attr.ib(default=DEFAULT_CACHE_SIZE, validator=attr.validators.instance_of(str))
    extra = attr.ib(factory=dict, repr=False)

    _KEYS = ("id", "devices", "cacheSize")

    @classmethod
    def from_json(cls, data, path="folder"):
        data = _object(data, path)
        refs = _field(data, path, "devices", (list,), list)
        return cls(
            id=_field(data, path, "id", (str,), _required(path)),
            devices=[
                FolderDeviceRef.from_json(ref, "{}.devices[{}]".format(path, idx))
                for idx, ref in enumerate(refs)
            ],
            cache_size=_field(data, path, "cacheSize", (str,), DEFAULT_CACHE_SIZE),
            extra=_extra(data, cls._KEYS),
        )

    def to_json(self):
        return _with_extra(
            {
                "id": self.id,
                "devices": [ref.to_json() for ref in self.devices],
                "cacheSize": self.cache_size,
            },
            self.extra,
        )

    def has_member(self, device_id):
        return any(ref.device_id == device_id for ref in self.devices)


# (attribute, JSON key, types, default) for every options field the
# agent defines.
_OPTIONS_FIELDS = [
    ("listen_address", "listenAddress", (list,), lambda: ["tcp://0.0.0.0:22000"]),
    ("local_announce_enabled", "localAnnounceEnabled", (bool,), True),
    ("local_announce_port", "localAnnouncePort", (int,), 21027),
    ("local_announce_mc_addr", "localAnnounceMCAddr", (str,), ""),
    ("global_announce_enabled", "globalAnnounceEnabled", (bool,), True),
    ("global_announce_servers", "globalAnnounceServers", (list,), lambda: ["default"]),
    ("relays_enabled", "relaysEnabled", (bool,), True),
    ("relay_without_global_announce", "relayWithoutGlobalAnn", (bool,), False),
    ("relay_servers", "relayServers", (list,), lambda: ["dynamic+https://relays.syncthing.net/endpoint"]),
    ("relay_reconnect_interval_m", "relayReconnectIntervalM", (int,), 10),
]


@attr.s
class OptionsConfiguration(object):
    """
    Network options of the agent.
    """
    listen_address = attr.ib(factory=lambda: ["tcp://0.0.0.0:22000"])
    local_announce_enabled = attr.ib(default=True)
    local_announce_port = attr.ib(default=21027)
    local_announce_mc_addr = attr.ib(default="")
    global_announce_enabled = attr.ib(default=True)
    global_announce_servers = attr.ib(factory=lambda: ["default"])
    relays_enabled = attr.ib(default=True)
    relay_without_global_announce = attr.ib(default=False)
    relay_servers = attr.ib(factory=lambda: ["dynamic+https://relays.syncthing.net/endpoint"])
    relay_reconnect_interval_m = attr.ib(default=10)
    extra = attr.ib(factory=dict, repr=False)

    @classmethod
    def from_json(cls, data, path="options"):
        data = _object(data, path)
        kwargs = {}
        for name, key, types, default in _OPTIONS_FIELDS:
            if types == (list,):
                kwargs[name] = _strings(data, path, key, default)
            else:
                kwargs[name] = _field(data, path, key, types, default)
        return cls(
            extra=_extra(data, [key for _, key, _, _ in _OPTIONS_FIELDS]),
            **kwargs
        )

    def to_json(self):
        encoded = {}
        for name, key, types, _ in _OPTIONS_FIELDS:
            value = getattr(self, name)
            encoded[key] = list(value) if types == (list,) else value
        return _with_extra(encoded, self.extra)


@attr.s
class GUIConfiguration(object):
    """
    Where the agent serves its GUI and REST API.
    """
    enabled = attr.ib(default=True)
    address = attr.ib(default="127.0.0.1:5833")

    @classmethod
    def from_json(cls, data, path="gui"):
        data = _object(data, path)
        return cls(
            enabled=_field(data, path, "enabled", (bool,), True),
            address=_field(data, path, "address", (str,), "127.0.0.1:5833"),
        )

    def to_json(self):
        return {
            "enabled": self.enabled,
            "address": self.address,
        }


@attr.s
class Configuration(object):
    """
    The whole configuration document of one agent.

    :ivar str my_id: device-ID of the local node
    :ivar list[Device] devices: kept sorted by ``device_id``
    :ivar list[Folder] folders: kept sorted by ``id``
    """
    my_id = attr.ib(validator=attr.validators.instance_of(str))
    devices = attr.ib(factory=list)
    folders = attr.ib(factory=list)
    mount_point = attr.ib(default="")
    options = attr.ib(factory=OptionsConfiguration)
    gui = attr.ib(factory=GUIConfiguration)
    version = attr.ib(default=0)

    @classmethod
    def from_json(cls, data, path="config"):
        """
        :param dict data: a parsed JSON configuration document

        :raise DecodeError: if ``data`` doesn't look like a configuration

        :returns Configuration:
        """
        data = _object(data, path)
        devices = _field(data, path, "devices", (list,), list)
        folders = _field(data, path, "folders", (list,), list)
        return cls(
            my_id=_field(data, path, "myID", (str,), ""),
            devices=[
                Device.from_json(d, "{}.devices[{}]".format(path, idx))
                for idx, d in enumerate(devices)
            ],
            folders=[
                Folder.from_json(f, "{}.folders[{}]".format(path, idx))
                for idx, f in enumerate(folders)
            ],
            mount_point=_field(data, path, "mountPoint", (str,), ""),
            options=OptionsConfiguration.from_json(
                _field(data, path, "options", (dict,), dict),
                "{}.options".format(path),
            ),
            gui=GUIConfiguration.from_json(
                _field(data, path, "gui", (dict,), dict),
                "{}.gui".format(path),
            ),
            version=_field(data, path, "version", (int,), 0),
        )

    def to_json(self):
        """
        :returns dict: a JSON-serializable form of this configuration, as
            the agent expects to receive it.
        """
        return {
            "version": self.version,
            "myID": self.my_id,
            "mountPoint": self.mount_point,
            "folders": [f.to_json() for f in self.folders],
            "devices": [d.to_json() for d in self.devices],
            "options": self.options.to_json(),
            "gui": self.gui.to_json(),
        }

    def sort(self):
        """
        Put devices and folders into their canonical order.
        """
        self.devices.sort(key=lambda d: d.device_id)
        self.folders.sort(key=lambda f: f.id)
