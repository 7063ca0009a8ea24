from PyQt5 import QtWidgets

from vizsync.control.feature_area import FeatureArea
from vizsync.control.schema import CapabilityDescriptor, ParamKind, ParamSpec
from vizsync.control.state import SyncState
from vizsync.control.widgets import QtToolkit, SliderField


class _Area(FeatureArea):
    def send_param(self, spec, value):
        self.send("set-param", key=spec.key, value=value)


def test_programmatic_values_do_not_fire_callbacks():
    toolkit = QtToolkit()
    folder = toolkit.create_folder("TEST")
    seen = []
    slider = toolkit.create(folder, ParamSpec("gain", "Gain", ParamKind.SLIDER, 0, 2, 0.01))
    toggle = toolkit.create(folder, ParamSpec("on", "On", ParamKind.TOGGLE))
    combo = toolkit.create(folder, ParamSpec("pr", "Ratio", ParamKind.DROPDOWN, options=(("0.5", 0.5), ("1", 1.0))))
    for control in (slider, toggle, combo):
        toolkit.on_change(control, seen.append)

    toolkit.set_value(slider, 1.25)
    toolkit.set_value(toggle, True)
    toolkit.set_value(combo, 1.0)

    assert seen == []
    assert toolkit.value(slider) == 1.25
    assert toolkit.value(toggle) is True
    assert toolkit.value(combo) == 1.0


def test_user_edits_fire_callbacks():
    toolkit = QtToolkit()
    folder = toolkit.create_folder("TEST")
    seen = []
    slider = toolkit.create(folder, ParamSpec("gain", "Gain", ParamKind.SLIDER, 0, 2, 0.01))
    toggle = toolkit.create(folder, ParamSpec("on", "On", ParamKind.TOGGLE))
    toolkit.on_change(slider, seen.append)
    toolkit.on_change(toggle, seen.append)

    assert isinstance(slider.widget, SliderField)
    slider.widget.spin.setValue(0.5)
    toggle.widget.setChecked(True)

    assert seen == [0.5, True]


def test_set_options_keeps_current_value():
    toolkit = QtToolkit()
    folder = toolkit.create_folder("TYPE")
    combo = toolkit.create(folder, ParamSpec("visualizer", "Select", ParamKind.DROPDOWN, options=(("A", "A"), ("B", "B"))))
    toolkit.set_value(combo, "B")
    toolkit.set_options(combo, [("C", "C"), ("B", "B")])

    assert combo.widget.count() == 2
    assert toolkit.value(combo) == "B"


def test_area_on_qt_surface_builds_and_tears_down():
    toolkit = QtToolkit()
    sent = []
    area = _Area(toolkit, lambda t, **kw: sent.append((t, kw)), SyncState())
    descriptor = CapabilityDescriptor("demo", "DEMO", (
        ParamSpec("zoom", "Zoom", ParamKind.SLIDER, 0, 10, 0.5),
        ParamSpec("alpha", "alpha", ParamKind.TOGGLE),
    ))
    area.build(descriptor, {"zoom": 4.0})

    boxes = toolkit.surface.findChildren(QtWidgets.QGroupBox)
    assert [b.title() for b in boxes] == ["DEMO"]
    labels = [lbl.text() for lbl in boxes[0].findChildren(QtWidgets.QLabel) if lbl.objectName() == "FormLabel"]
    assert labels == ["alpha", "Zoom"]

    zoom = area.binding("zoom").handle
    assert toolkit.value(zoom) == 4.0
    zoom.widget.spin.setValue(6.5)
    assert sent == [("set-param", {"key": "zoom", "value": 6.5})]

    area.teardown()
    assert toolkit.surface.layout().count() == 0
    assert area.bindings == []


def test_action_and_text_rows():
    toolkit = QtToolkit()
    folder = toolkit.create_folder("EDIT")
    clicks, texts = [], []
    button = toolkit.add_action(folder, "Save", lambda: clicks.append(1))
    text = toolkit.add_text(folder, "Save as", "initial", texts.append)

    button.widget.click()
    text.widget.setText("Mine")
    text.widget.editingFinished.emit()

    assert clicks == [1]
    assert texts == ["Mine"]
    assert toolkit.value(text) == "Mine"
    width, height = toolkit.content_size()
    assert width > 0 and height > 0
