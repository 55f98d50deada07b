# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Tests for ``stfuse_config.model``.
"""

from hypothesis import (
    given,
)

from testtools.matchers import (
    Equals,
    MatchesStructure,
)

from ..error import (
    DecodeError,
)
from ..model import (
    COMPRESSION_METADATA,
    DEFAULT_CACHE_SIZE,
    Configuration,
    Device,
    Folder,
    FolderDeviceRef,
    GUIConfiguration,
    OptionsConfiguration,
)
from .common import (
    SyncTestCase,
)
from .strategies import (
    configurations,
)

LOCAL = u"L" * 56
REMOTE = u"R" * 56


class DeviceTests(SyncTestCase):
    """
    Tests for ``Device`` JSON conversion.
    """
    def test_defaults(self):
        """
        Only ``deviceID`` is required; everything else gets the agent's
        defaults.
        """
        self.assertThat(
            Device.from_json({u"deviceID": REMOTE}),
            MatchesStructure.byEquality(
                device_id=REMOTE,
                name=u"",
                addresses=[u"dynamic"],
                compression=COMPRESSION_METADATA,
                introducer=False,
                extra={},
            ),
        )

    def test_missing_identity(self):
        """
        A device without ``deviceID`` can't be decoded.
        """
        with self.assertRaises(DecodeError) as ctx:
            Device.from_json({u"name": u"laptop"}, u"config.devices[3]")
        self.assertThat(ctx.exception.field, Equals(u"config.devices[3]"))

    def test_wrong_type(self):
        """
        A value of the wrong JSON type is a ``DecodeError`` naming the
        path to it.
        """
        with self.assertRaises(DecodeError) as ctx:
            Device.from_json({u"deviceID": REMOTE, u"introducer": u"yes"})
        self.assertThat(ctx.exception.field, Equals(u"device.introducer"))

    def test_unknown_compression(self):
        """
        Compression must be one of the three the agent knows.
        """
        self.assertRaises(
            DecodeError,
            Device.from_json,
            {u"deviceID": REMOTE, u"compression": u"sometimes"},
        )

    def test_non_string_address(self):
        """
        Every address must be a string.
        """
        with self.assertRaises(DecodeError) as ctx:
            Device.from_json({u"deviceID": REMOTE, u"addresses": [u"dynamic", 22000]})
        self.assertThat(ctx.exception.field, Equals(u"device.addresses[1]"))

    def test_extra_preserved(self):
        """
        Keys this editor doesn't know about survive a round-trip.
        """
        data = {u"deviceID": REMOTE, u"certName": u"syncthing", u"name": u"nas"}
        device = Device.from_json(data)
        self.assertThat(device.extra, Equals({u"certName": u"syncthing"}))
        self.assertThat(device.to_json()[u"certName"], Equals(u"syncthing"))


class FolderTests(SyncTestCase):
    """
    Tests for ``Folder`` JSON conversion.
    """
    def test_null_devices(self):
        """
        The agent encodes an empty member list as ``null``.
        """
        folder = Folder.from_json({u"id": u"music", u"devices": None})
        self.assertThat(
            folder,
            MatchesStructure.byEquality(
                id=u"music",
                devices=[],
                cache_size=DEFAULT_CACHE_SIZE,
            ),
        )

    def test_members(self):
        """
        Members are decoded in order, including whatever else they carry.
        """
        folder = Folder.from_json({
            u"id": u"music",
            u"cacheSize": u"1 GiB",
            u"devices": [
                {u"deviceID": REMOTE},
                {u"deviceID": LOCAL, u"introducedBy": u""},
            ],
        })
        self.assertThat(
            folder.devices,
            Equals([
                FolderDeviceRef(device_id=REMOTE),
                FolderDeviceRef(device_id=LOCAL, extra={u"introducedBy": u""}),
            ]),
        )
        self.assertThat(folder.has_member(LOCAL), Equals(True))
        self.assertThat(folder.has_member(u"X" * 56), Equals(False))

    def test_member_without_identity(self):
        """
        A member reference without ``deviceID`` is a ``DecodeError``.
        """
        with self.assertRaises(DecodeError) as ctx:
            Folder.from_json({u"id": u"music", u"devices": [{}]})
        self.assertThat(ctx.exception.field, Equals(u"folder.devices[0]"))


class ConfigurationTests(SyncTestCase):
    """
    Tests for ``Configuration`` JSON conversion and ordering.
    """
    def test_empty_document(self):
        """
        An empty document decodes to an empty configuration with default
        options.
        """
        config = Configuration.from_json({})
        self.assertThat(
            config,
            MatchesStructure.byEquality(
                my_id=u"",
                devices=[],
                folders=[],
                mount_point=u"",
                options=OptionsConfiguration(),
                gui=GUIConfiguration(),
                version=0,
            ),
        )

    def test_options(self):
        """
        Options are decoded field by field; unknown ones are kept.
        """
        config = Configuration.from_json({
            u"options": {
                u"listenAddress": [u"tcp://0.0.0.0:22001"],
                u"relaysEnabled": False,
                u"localAnnouncePort": 21028,
                u"maxSendKbps": 100,
            },
        })
        self.assertThat(
            config.options,
            MatchesStructure.byEquality(
                listen_address=[u"tcp://0.0.0.0:22001"],
                relays_enabled=False,
                local_announce_port=21028,
                global_announce_enabled=True,
                extra={u"maxSendKbps": 100},
            ),
        )
        self.assertThat(
            config.to_json()[u"options"][u"maxSendKbps"],
            Equals(100),
        )

    def test_bool_is_not_int(self):
        """
        ``true`` is not accepted where a number is expected.
        """
        self.assertRaises(
            DecodeError,
            Configuration.from_json,
            {u"options": {u"localAnnouncePort": True}},
        )

    def test_not_an_object(self):
        """
        The document must be a JSON object.
        """
        self.assertRaises(DecodeError, Configuration.from_json, [])

    def test_sort(self):
        """
        ``sort`` orders devices by device-ID and folders by ID.
        """
        config = Configuration(
            my_id=LOCAL,
            devices=[Device(device_id=REMOTE), Device(device_id=LOCAL)],
            folders=[Folder(id=u"b"), Folder(id=u"B"), Folder(id=u"a")],
        )
        config.sort()
        self.assertThat(
            ([d.device_id for d in config.devices], [f.id for f in config.folders]),
            Equals(([LOCAL, REMOTE], [u"B", u"a", u"b"])),
        )

    @given(configurations())
    def test_json_round_trip(self, config):
        """
        Decoding what was encoded gives back an equal configuration.
        """
        self.assertThat(
            Configuration.from_json(config.to_json()),
            Equals(config),
        )
