import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt5 import QtWidgets

from vizsync.channel import ChannelEndpoint, LocalChannel
from vizsync.control.storage import LocalStorage
from vizsync.control.widgets import ControlToolkit


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app


class FakeFolder:
    def __init__(self, title):
        self.title = title
        self.controls = []
        self.actions = {}
        self.visible = True
        self.destroyed = False
        self.removed = False


class FakeControl:
    def __init__(self, folder, spec=None, label="", value=None):
        self.folder = folder
        self.spec = spec
        self.label = spec.label if spec is not None else label
        self.value = value
        self.options = list(spec.options) if spec is not None else []
        self.callbacks = []
        self.destroyed = False

    def user_sets(self, value):
        """Simulate a user edit: store the value then fire the callbacks."""
        self.value = value
        for cb in list(self.callbacks):
            cb(value)


class RecordingToolkit(ControlToolkit):
    """In-memory toolkit recording everything the panel asks for."""

    def __init__(self, fail_destroy=False):
        self.folders = []
        self.fail_destroy = fail_destroy
        self.size = (240, 320)

    def live_folders(self):
        return [f for f in self.folders if not f.destroyed and not f.removed]

    def folder(self, title):
        for f in self.live_folders():
            if f.title == title:
                return f
        return None

    def control(self, title, label):
        folder = self.folder(title)
        if folder is None:
            return None
        for c in folder.controls:
            if c.label == label and not c.destroyed:
                return c
        return None

    def create_folder(self, title):
        folder = FakeFolder(title)
        self.folders.append(folder)
        return folder

    def destroy_folder(self, folder):
        if self.fail_destroy:
            raise RuntimeError("destroy failed")
        folder.destroyed = True

    def remove_folder(self, folder):
        folder.removed = True

    def set_folder_visible(self, folder, visible):
        folder.visible = visible

    def create(self, folder, spec):
        control = FakeControl(folder, spec, value=spec.initial())
        folder.controls.append(control)
        return control

    def destroy(self, control):
        control.destroyed = True

    def set_value(self, control, value):
        control.value = value

    def value(self, control):
        return control.value

    def on_change(self, control, callback):
        control.callbacks.append(callback)

    def set_options(self, control, options):
        control.options = list(options)

    def add_action(self, folder, label, callback):
        folder.actions[label] = callback
        return label

    def add_text(self, folder, label, value, callback=None):
        control = FakeControl(folder, label=label, value=value)
        if callback is not None:
            control.callbacks.append(callback)
        folder.controls.append(control)
        return control

    def content_size(self):
        return self.size


@pytest.fixture
def toolkit():
    return RecordingToolkit()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "storage.json")


@pytest.fixture
def channel(qapp):
    return LocalChannel(qapp)


@pytest.fixture
def sent(channel):
    """Every message seen on the channel, in delivery order."""
    seen = []
    channel.subscribe(seen.append)
    return seen


@pytest.fixture
def panel_endpoint(channel):
    return ChannelEndpoint(channel, "controls")


@pytest.fixture
def host_endpoint(channel):
    return ChannelEndpoint(channel, "player")


@pytest.fixture
def failing_toolkit():
    return RecordingToolkit(fail_destroy=True)
