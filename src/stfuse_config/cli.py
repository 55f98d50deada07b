# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
``stfuse-config``: view and edit a syncthing-fuse agent's configuration
through its REST API.
"""

import sys
import json

from twisted.internet.task import (
    react,
)
from twisted.python import usage
from twisted.internet.defer import (
    maybeDeferred,
)

from eliot.twisted import (
    inline_callbacks,
)

from hyperlink import (
    DecodedURL,
)

from .client import (
    DEFAULT_API_ROOT,
    CannotAccessAPIError,
    ConfigApiError,
    create_config_api_client,
    create_http_client,
)
from .draft import (
    DraftStore,
)
from .editors import (
    DeviceEditor,
    FolderEditor,
)
from .error import (
    ConfigEditorError,
    NotFound,
    PersistenceFailure,
)
from .model import (
    COMPRESSION_CHOICES,
    COMPRESSION_METADATA,
    DEFAULT_CACHE_SIZE,
    DYNAMIC_ADDRESS,
)
from .validation import (
    check_device_id,
    check_human_size,
)
from .util.eliotutil import (
    maybe_enable_eliot_logging,
    with_eliot_options,
)


def _require(options, *required):
    for long_name, short_name in required:
        if options[long_name] is None:
            raise usage.UsageError("--{} / -{} is required".format(long_name, short_name))


def _compression(value):
    if value not in COMPRESSION_CHOICES:
        raise usage.UsageError(
            "--compression must be one of {}".format(", ".join(COMPRESSION_CHOICES))
        )
    return value


def _get_device(store, device_id):
    device = store.find_device(device_id)
    if device is None:
        raise NotFound(u"device", device_id)
    return device


def _get_folder(store, folder_id):
    folder = store.find_folder(folder_id)
    if folder is None:
        raise NotFound(u"folder", folder_id)
    return folder


class _RepeatedOptions(usage.Options):
    """
    Options where some parameters may be given more than once; each one
    named in ``repeated`` collects into a list.
    """
    repeated = ()

    def __init__(self):
        usage.Options.__init__(self)
        for name in self.repeated:
            self[name] = []


class ShowConfigOptions(usage.Options):
    pass


@inline_callbacks
def show_config(options):
    """
    Print the whole configuration as JSON
    """
    store = options.parent.store
    config = yield store.load()
    print(json.dumps(config.to_json(), indent=4), file=options.stdout)
    if not store.synced:
        print("(the agent is not running with this configuration yet)", file=options.stderr)


class ListDevicesOptions(usage.Options):
    pass


@inline_callbacks
def list_devices(options):
    """
    List all devices, the local one first
    """
    store = options.parent.store
    yield store.load()
    this_device = store.this_device()
    if this_device is not None:
        print(
            "{}\t{}\t(this device)".format(store.display_name(this_device), this_device.device_id),
            file=options.stdout,
        )
    for device in store.other_devices():
        print(
            "{}\t{}\t{}".format(
                store.display_name(device),
                device.device_id,
                ", ".join(device.addresses),
            ),
            file=options.stdout,
        )


class ListFoldersOptions(usage.Options):
    pass


@inline_callbacks
def list_folders(options):
    """
    List all folders and who they are shared with
    """
    store = options.parent.store
    config = yield store.load()
    for folder in config.folders:
        print(
            "{}\t{}\t{}".format(folder.id, folder.cache_size, store.shares_folder(folder)),
            file=options.stdout,
        )


class AddDeviceOptions(_RepeatedOptions):
    optParameters = [
        ("device-id", "i", None, "ID of the device to add"),
        ("name", "n", "", "Display name of the device"),
        ("addresses", "a", DYNAMIC_ADDRESS, "Comma-separated addresses of the device"),
        ("compression", "c", COMPRESSION_METADATA, "Compression: always, metadata or never", _compression),
    ]
    optFlags = [
        ["introducer", None, "The device is an introducer"],
    ]
    repeated = ("folders",)

    def opt_folder(self, folder_id):
        """
        Share this folder with the device (may be given more than once)
        """
        self["folders"].append(folder_id)

    opt_f = opt_folder

    def postOptions(self):
        _require(self, ("device-id", "i"))


@inline_callbacks
def add_device(options):
    """
    Add a new device, optionally sharing folders with it
    """
    store = options.parent.store
    yield store.load()
    for folder_id in options["folders"]:
        _get_folder(store, folder_id)

    editor = DeviceEditor(store)
    draft = editor.begin_add()
    draft.device.device_id = options["device-id"]
    draft.device.name = options["name"]
    draft.device.compression = options["compression"]
    draft.device.introducer = bool(options["introducer"])
    draft.addresses_str = options["addresses"]
    for folder_id in options["folders"]:
        draft.selected_folders[folder_id] = True

    yield editor.validate()
    yield editor.commit()
    print("Added device {}".format(draft.device.device_id), file=options.stdout)


class EditDeviceOptions(_RepeatedOptions):
    optParameters = [
        ("device-id", "i", None, "ID of the device to edit"),
        ("name", "n", None, "New display name"),
        ("addresses", "a", None, "New comma-separated addresses"),
        ("compression", "c", None, "Compression: always, metadata or never", _compression),
    ]
    optFlags = [
        ["introducer", None, "Make the device an introducer"],
        ["no-introducer", None, "Make the device not an introducer"],
    ]
    repeated = ("share", "unshare")

    def opt_share(self, folder_id):
        """
        Share this folder with the device (may be given more than once)
        """
        self["share"].append(folder_id)

    def opt_unshare(self, folder_id):
        """
        Stop sharing this folder with the device (may be given more than once)
        """
        self["unshare"].append(folder_id)

    opt_s = opt_share
    opt_u = opt_unshare

    def postOptions(self):
        _require(self, ("device-id", "i"))
        if self["introducer"] and self["no-introducer"]:
            raise usage.UsageError("--introducer and --no-introducer are exclusive")


@inline_callbacks
def edit_device(options):
    """
    Change a device's attributes and which folders it shares
    """
    store = options.parent.store
    yield store.load()
    device = _get_device(store, options["device-id"])
    for folder_id in options["share"] + options["unshare"]:
        _get_folder(store, folder_id)

    editor = DeviceEditor(store)
    draft = editor.begin_edit(device)
    if options["name"] is not None:
        draft.device.name = options["name"]
    if options["addresses"] is not None:
        draft.addresses_str = options["addresses"]
    if options["compression"] is not None:
        draft.device.compression = options["compression"]
    if options["introducer"]:
        draft.device.introducer = True
    if options["no-introducer"]:
        draft.device.introducer = False
    for folder_id in options["share"]:
        draft.selected_folders[folder_id] = True
    for folder_id in options["unshare"]:
        draft.selected_folders[folder_id] = False

    yield editor.validate()
    yield editor.commit()
    print("Updated device {}".format(device.device_id), file=options.stdout)


class RemoveDeviceOptions(usage.Options):
    optParameters = [
        ("device-id", "i", None, "ID of the device to remove"),
    ]

    def postOptions(self):
        _require(self, ("device-id", "i"))


@inline_callbacks
def remove_device(options):
    """
    Remove a device and its membership in every folder
    """
    store = options.parent.store
    yield store.load()
    editor = DeviceEditor(store)
    editor.begin_edit(_get_device(store, options["device-id"]))
    yield editor.delete()
    print("Removed device {}".format(options["device-id"]), file=options.stdout)


class AddFolderOptions(_RepeatedOptions):
    optParameters = [
        ("folder-id", "i", None, "ID of the folder to add"),
        ("cache-size", "s", DEFAULT_CACHE_SIZE, "Size of the block cache, like '512 MiB'"),
    ]
    repeated = ("devices",)

    def opt_device(self, device_id):
        """
        Share the folder with this device (may be given more than once)
        """
        self["devices"].append(device_id)

    opt_d = opt_device

    def postOptions(self):
        _require(self, ("folder-id", "i"))


def _select_devices(store, device_ids):
    for device_id in device_ids:
        _get_device(store, device_id)
    return {device_id: True for device_id in device_ids}


@inline_callbacks
def add_folder(options):
    """
    Add a new folder, shared with the given devices
    """
    store = options.parent.store
    yield store.load()
    selected = _select_devices(store, options["devices"])

    editor = FolderEditor(store)
    draft = editor.begin_add()
    draft.folder.id = options["folder-id"]
    draft.folder.cache_size = options["cache-size"]
    draft.selected_devices = selected

    yield editor.validate()
    yield editor.commit()
    print("Added folder {}".format(options["folder-id"]), file=options.stdout)


class EditFolderOptions(_RepeatedOptions):
    optParameters = [
        ("folder-id", "i", None, "ID of the folder to edit"),
        ("cache-size", "s", None, "New size of the block cache, like '512 MiB'"),
    ]
    repeated = ("devices",)

    def opt_device(self, device_id):
        """
        Share the folder with this device; if given at all, the devices
        given replace the folder's current members (may be given more
        than once)
        """
        self["devices"].append(device_id)

    opt_d = opt_device

    def postOptions(self):
        _require(self, ("folder-id", "i"))


@inline_callbacks
def edit_folder(options):
    """
    Change a folder's cache size or its members
    """
    store = options.parent.store
    yield store.load()
    folder = _get_folder(store, options["folder-id"])

    editor = FolderEditor(store)
    draft = editor.begin_edit(folder)
    if options["cache-size"] is not None:
        draft.folder.cache_size = options["cache-size"]
    if options["devices"]:
        draft.selected_devices = _select_devices(store, options["devices"])

    yield editor.validate()
    yield editor.commit()
    print("Updated folder {}".format(folder.id), file=options.stdout)


class RemoveFolderOptions(usage.Options):
    optParameters = [
        ("folder-id", "i", None, "ID of the folder to remove"),
    ]

    def postOptions(self):
        _require(self, ("folder-id", "i"))


@inline_callbacks
def remove_folder(options):
    """
    Remove a folder
    """
    store = options.parent.store
    yield store.load()
    editor = FolderEditor(store)
    editor.begin_edit(_get_folder(store, options["folder-id"]))
    yield editor.delete()
    print("Removed folder {}".format(options["folder-id"]), file=options.stdout)


class VerifyDeviceIdOptions(usage.Options):
    optParameters = [
        ("device-id", "i", None, "The device-ID to check"),
    ]

    def postOptions(self):
        _require(self, ("device-id", "i"))


@inline_callbacks
def verify_device_id(options):
    """
    Check whether a device-ID could be added
    """
    store = options.parent.store
    yield store.load()
    reason = yield maybeDeferred(
        check_device_id, store, lambda: False, options["device-id"],
    )
    print(reason or "valid", file=options.stdout)
    if reason:
        raise SystemExit(3)


class VerifySizeOptions(usage.Options):
    optParameters = [
        ("size", "s", None, "The size to check, like '512 MiB'"),
    ]

    def postOptions(self):
        _require(self, ("size", "s"))


@inline_callbacks
def verify_size(options):
    """
    Check whether the agent understands a size
    """
    reason = yield maybeDeferred(
        check_human_size, options.parent.client, options["size"],
    )
    print(reason or "valid", file=options.stdout)
    if reason:
        raise SystemExit(3)


@with_eliot_options
class ConfigEditorCommand(usage.Options):
    """
    top-level command (entry-point is "stfuse-config")
    """
    stdout = sys.stdout
    stderr = sys.stderr

    _http_client = None  # lazy-instantiated by .client @property
    _client = None  # lazy-instantiated by .client @property
    _store = None  # lazy-instantiated by .store @property

    subCommands = [
        ["show-config", None, ShowConfigOptions, "Print the configuration as JSON."],
        ["list-devices", None, ListDevicesOptions, "List all devices."],
        ["list-folders", None, ListFoldersOptions, "List all folders and their members."],
        ["add-device", None, AddDeviceOptions, "Add a device."],
        ["edit-device", None, EditDeviceOptions, "Edit a device."],
        ["remove-device", None, RemoveDeviceOptions, "Remove a device."],
        ["add-folder", None, AddFolderOptions, "Add a folder."],
        ["edit-folder", None, EditFolderOptions, "Edit a folder."],
        ["remove-folder", None, RemoveFolderOptions, "Remove a folder."],
        ["verify-device-id", None, VerifyDeviceIdOptions, "Check a device-ID."],
        ["verify-size", None, VerifySizeOptions, "Check a size such as '512 MiB'."],
    ]
    optFlags = [
        ["debug", "d", "Print full stack-traces"],
    ]
    optParameters = [
        ("api-root", "r", DEFAULT_API_ROOT, "Root URL of the agent's REST API"),
        ("api-endpoint", "e", None,
         "Twisted client endpoint-string to reach the API (default: from --api-root)"),
    ]
    description = (
        "View and edit the configuration of a running syncthing-fuse "
        "agent through its REST API"
    )

    @property
    def api_root(self):
        return DecodedURL.from_text(self["api-root"])

    @property
    def api_client_endpoint(self):
        if self["api-endpoint"] is not None:
            return self["api-endpoint"]
        return "tcp:{}:{}".format(self.api_root.host, self.api_root.port)

    @property
    def client(self):
        if self._client is None:
            if self._http_client is None:
                from twisted.internet import reactor
                self._http_client = create_http_client(reactor, self.api_client_endpoint)
            self._client = create_config_api_client(self.api_root, self._http_client)
        return self._client

    @property
    def store(self):
        if self._store is None:
            self._store = DraftStore(self.client)
        return self._store

    def opt_version(self):
        """
        Display stfuse-config version and exit.
        """
        from . import __version__
        print("stfuse-config version {}".format(__version__), file=self.stdout)
        sys.exit(0)

    def postOptions(self):
        if not hasattr(self, 'subOptions'):
            raise usage.UsageError("must specify a subcommand")

    def getSynopsis(self):
        return "Usage: stfuse-config [global-options] <subcommand> [subcommand-options]"

    def getUsage(self, width=None):
        t = usage.Options.getUsage(self, width)
        t += (
            "Please run e.g. 'stfuse-config add-device --help' for more "
            "details on each subcommand.\n"
        )
        return t


@inline_callbacks
def dispatch_config_command(args, stdout=None, stderr=None, http_client=None):
    """
    Run a stfuse-config command with the given args

    :param list[str] args: arguments without the 'stfuse-config' 0th arg

    :param stdout: file-like writable object to collect stdout (or
        None for default)

    :param stderr: file-like writable object to collect stderr (or None
        for default)

    :param http_client: the treq client to use, or None to construct one.

    :returns: a Deferred which fires with the result of doing this
        stfuse-config (sub)command.
    """
    options = ConfigEditorCommand()
    if stdout is not None:
        options.stdout = stdout
    if stderr is not None:
        options.stderr = stderr
    if http_client is not None:
        options._http_client = http_client
    try:
        options.parseOptions(args)
    except usage.UsageError as e:
        print("Error: {}".format(e), file=options.stdout)
        # if a user just typed "stfuse-config" don't make them re-run
        # with "--help" just to see the sub-commands they were
        # supposed to use
        if len(args) == 0:
            print(options, file=options.stdout)
        raise SystemExit(1)

    yield run_config_options(options)


@inline_callbacks
def run_config_options(options):
    """
    Runs a stfuse-config subcommand with the provided options.

    :param options: already-parsed options.

    :returns: a Deferred which fires with the result of doing this
        stfuse-config (sub)command.
    """
    so = options.subOptions
    so.stdout = options.stdout
    so.stderr = options.stderr
    main_func = {
        "show-config": show_config,
        "list-devices": list_devices,
        "list-folders": list_folders,
        "add-device": add_device,
        "edit-device": edit_device,
        "remove-device": remove_device,
        "add-folder": add_folder,
        "edit-folder": edit_folder,
        "remove-folder": remove_folder,
        "verify-device-id": verify_device_id,
        "verify-size": verify_size,
    }[options.subCommand]

    maybe_enable_eliot_logging(options)

    # we want to let exceptions out to the top level if --debug is on
    # because this gives better stack-traces
    if options['debug']:
        yield maybeDeferred(main_func, so)

    else:
        try:
            yield maybeDeferred(main_func, so)

        except CannotAccessAPIError as e:
            # give user more information if we can't find the agent at all
            print(u"Error: {}".format(e), file=options.stderr)
            print(u"   Attempted access via {}".format(options.api_client_endpoint), file=options.stderr)
            raise SystemExit(1)

        except (ConfigApiError, PersistenceFailure) as e:
            print(u"Error: {}".format(e), file=options.stderr)
            raise SystemExit(2)

        except ConfigEditorError as e:
            print(u"Error: {}".format(e), file=options.stderr)
            raise SystemExit(3)


def _entry():
    """
    Implement the *stfuse-config* console script declared in ``setup.py``.

    :return: ``None``
    """

    def main(reactor):
        return dispatch_config_command(sys.argv[1:])
    return react(main)


if __name__ == '__main__':
    # this allows one to run this like "python -m stfuse_config.cli"
    _entry()
