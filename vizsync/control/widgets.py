from __future__ import annotations

import abc
from typing import Any, Callable, Optional, Sequence, Tuple

from loguru import logger
from PyQt5 import QtCore, QtWidgets

from .schema import Option, ParamKind, ParamSpec, normalize_options


class ControlToolkit(abc.ABC):
    """What the panel needs from a widget library.

    Handles returned by the ``create*``/``add*`` methods are opaque to the
    callers. Setting a value programmatically must not fire the change
    callbacks.
    """

    @abc.abstractmethod
    def create_folder(self, title: str) -> Any: ...

    @abc.abstractmethod
    def destroy_folder(self, folder: Any) -> None: ...

    @abc.abstractmethod
    def remove_folder(self, folder: Any) -> None:
        """Detach a folder by hand when :meth:`destroy_folder` failed."""

    @abc.abstractmethod
    def set_folder_visible(self, folder: Any, visible: bool) -> None: ...

    @abc.abstractmethod
    def create(self, folder: Any, spec: ParamSpec) -> Any: ...

    @abc.abstractmethod
    def destroy(self, control: Any) -> None: ...

    @abc.abstractmethod
    def set_value(self, control: Any, value: Any) -> None: ...

    @abc.abstractmethod
    def value(self, control: Any) -> Any: ...

    @abc.abstractmethod
    def on_change(self, control: Any, callback: Callable[[Any], None]) -> None: ...

    @abc.abstractmethod
    def set_options(self, control: Any, options: Sequence[Any]) -> None: ...

    @abc.abstractmethod
    def add_action(self, folder: Any, label: str, callback: Callable[[], None]) -> Any: ...

    @abc.abstractmethod
    def add_text(self, folder: Any, label: str, value: str, callback: Optional[Callable[[str], None]] = None) -> Any: ...

    @abc.abstractmethod
    def content_size(self) -> Tuple[int, int]: ...


def _guard(callback, *args):
    # une exception ne doit jamais sortir d'un slot Qt
    try:
        callback(*args)
    except Exception:  # pylint: disable=broad-except
        logger.exception("control callback failed")


def _decimals(step: Optional[float]) -> int:
    if not step:
        return 2
    text = f"{float(step):.6f}".rstrip("0")
    return min(6, len(text.split(".")[1])) if "." in text else 0


def mk_info(text: str) -> QtWidgets.QToolButton:
    b = QtWidgets.QToolButton(); b.setText("i"); b.setCursor(QtCore.Qt.PointingHandCursor)
    b.setToolTipDuration(0); b.setToolTip(text); b.setFixedSize(20, 20)
    b.setObjectName("InfoButton")
    return b


def row(form: QtWidgets.QFormLayout, label: str, widget: QtWidgets.QWidget, tip: str = "") -> QtWidgets.QWidget:
    h = QtWidgets.QHBoxLayout(); h.setContentsMargins(0, 0, 0, 0); h.setSpacing(6)
    h.addWidget(widget, 1)
    if tip:
        h.addWidget(mk_info(tip), 0)
    w = QtWidgets.QWidget(); w.setLayout(h)
    lbl = QtWidgets.QLabel(label)
    lbl.setObjectName("FormLabel")
    form.addRow(lbl, w)
    return w


class SliderField(QtWidgets.QWidget):
    """Slider and spin box kept in step over a ``[minimum, maximum]`` range."""

    valueChanged = QtCore.pyqtSignal(float)

    def __init__(self, minimum: float, maximum: float, step: Optional[float] = None):
        super().__init__()
        self._min = float(minimum)
        self._max = float(maximum)
        self._step = float(step) if step else (self._max - self._min) / 100.0 or 0.01

        self.slider = QtWidgets.QSlider(QtCore.Qt.Horizontal)
        self.slider.setTracking(True)
        self.slider.setRange(0, max(1, int(round((self._max - self._min) / self._step))))

        self.spin = QtWidgets.QDoubleSpinBox()
        self.spin.setDecimals(_decimals(step))
        self.spin.setSingleStep(self._step)
        self.spin.setRange(self._min, self._max)

        layout = QtWidgets.QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)
        layout.addWidget(self.slider, 1)
        layout.addWidget(self.spin)

        self.slider.valueChanged.connect(self._on_slider_changed)
        self.spin.valueChanged.connect(self._on_spin_changed)

    def _on_slider_changed(self, raw: int):
        value = self._min + raw * self._step
        with QtCore.QSignalBlocker(self.spin):
            self.spin.setValue(value)
        self.valueChanged.emit(float(self.spin.value()))

    def _on_spin_changed(self, value: float):
        with QtCore.QSignalBlocker(self.slider):
            self.slider.setValue(int(round((value - self._min) / self._step)))
        self.valueChanged.emit(float(value))

    def setValue(self, value: float):
        clamped = max(self._min, min(self._max, float(value)))
        with QtCore.QSignalBlocker(self.spin):
            self.spin.setValue(clamped)
        with QtCore.QSignalBlocker(self.slider):
            self.slider.setValue(int(round((clamped - self._min) / self._step)))

    def value(self) -> float:
        return float(self.spin.value())


class QtControl:
    """One form row created by :class:`QtToolkit`."""

    def __init__(self, folder, spec: Optional[ParamSpec], widget, row_widget):
        self.folder = folder
        self.spec = spec
        self.widget = widget
        self.row = row_widget


class QtToolkit(ControlToolkit):
    """Folders as group boxes stacked in a scrollable surface widget."""

    def __init__(self, surface: Optional[QtWidgets.QWidget] = None, tooltips: Optional[dict] = None):
        self.surface = surface or QtWidgets.QWidget()
        layout = self.surface.layout()
        if layout is None:
            layout = QtWidgets.QVBoxLayout(self.surface)
            layout.setContentsMargins(8, 8, 8, 8)
            layout.setSpacing(8)
        self._layout = layout
        self._tooltips = dict(tooltips or {})

    # ---- dossiers
    def create_folder(self, title: str) -> QtWidgets.QGroupBox:
        box = QtWidgets.QGroupBox(title)
        box.setObjectName("ControlFolder")
        form = QtWidgets.QFormLayout(box)
        form.setLabelAlignment(QtCore.Qt.AlignLeft | QtCore.Qt.AlignVCenter)
        self._layout.addWidget(box)
        return box

    def destroy_folder(self, folder: QtWidgets.QGroupBox) -> None:
        self._layout.removeWidget(folder)
        folder.hide()
        folder.deleteLater()

    def remove_folder(self, folder: QtWidgets.QGroupBox) -> None:
        folder.hide()
        parent = folder.parentWidget()
        if parent is not None and parent.layout() is not None:
            parent.layout().removeWidget(folder)
        folder.setParent(None)

    def set_folder_visible(self, folder: QtWidgets.QGroupBox, visible: bool) -> None:
        folder.setVisible(bool(visible))

    # ---- contrôles
    def create(self, folder: QtWidgets.QGroupBox, spec: ParamSpec) -> QtControl:
        if spec.kind is ParamKind.SLIDER:
            widget = SliderField(
                spec.minimum if spec.minimum is not None else 0.0,
                spec.maximum if spec.maximum is not None else 1.0,
                spec.step,
            )
        elif spec.kind is ParamKind.TOGGLE:
            widget = QtWidgets.QCheckBox()
        else:
            widget = QtWidgets.QComboBox()
            self._fill_combo(widget, spec.options)
        tip = self._tooltips.get(spec.key, "")
        row_widget = row(folder.layout(), spec.label, widget, tip)
        control = QtControl(folder, spec, widget, row_widget)
        self.set_value(control, spec.initial())
        return control

    def destroy(self, control: QtControl) -> None:
        form = control.folder.layout()
        if form is not None and control.row is not None:
            form.removeRow(control.row)
        control.row = None

    def set_value(self, control: QtControl, value: Any) -> None:
        widget = control.widget
        with QtCore.QSignalBlocker(widget):
            if isinstance(widget, SliderField):
                if value is not None:
                    widget.setValue(float(value))
            elif isinstance(widget, QtWidgets.QCheckBox):
                widget.setChecked(bool(value))
            elif isinstance(widget, QtWidgets.QComboBox):
                index = self._combo_index(widget, value)
                if index >= 0:
                    widget.setCurrentIndex(index)
            elif isinstance(widget, QtWidgets.QLineEdit):
                widget.setText("" if value is None else str(value))

    def value(self, control: QtControl) -> Any:
        widget = control.widget
        if isinstance(widget, SliderField):
            return widget.value()
        if isinstance(widget, QtWidgets.QCheckBox):
            return widget.isChecked()
        if isinstance(widget, QtWidgets.QComboBox):
            return widget.currentData()
        if isinstance(widget, QtWidgets.QLineEdit):
            return widget.text()
        return None

    def on_change(self, control: QtControl, callback: Callable[[Any], None]) -> None:
        widget = control.widget
        if isinstance(widget, SliderField):
            widget.valueChanged.connect(lambda v, _cb=callback: _guard(_cb, v))
        elif isinstance(widget, QtWidgets.QCheckBox):
            widget.toggled.connect(lambda checked, _cb=callback: _guard(_cb, checked))
        elif isinstance(widget, QtWidgets.QComboBox):
            widget.activated.connect(lambda _i, _w=widget, _cb=callback: _guard(_cb, _w.currentData()))
        elif isinstance(widget, QtWidgets.QLineEdit):
            widget.editingFinished.connect(lambda _w=widget, _cb=callback: _guard(_cb, _w.text()))

    def set_options(self, control: QtControl, options: Sequence[Any]) -> None:
        combo = control.widget
        if not isinstance(combo, QtWidgets.QComboBox):
            raise TypeError("options only apply to dropdown controls")
        current = combo.currentData()
        pairs = normalize_options(options)
        with QtCore.QSignalBlocker(combo):
            self._fill_combo(combo, pairs)
            index = self._combo_index(combo, current)
            if index >= 0:
                combo.setCurrentIndex(index)

    def add_action(self, folder: QtWidgets.QGroupBox, label: str, callback: Callable[[], None]) -> QtControl:
        button = QtWidgets.QPushButton(label)
        button.clicked.connect(lambda checked=False, _cb=callback: _guard(_cb))
        folder.layout().addRow(button)
        return QtControl(folder, None, button, button)

    def add_text(self, folder: QtWidgets.QGroupBox, label: str, value: str, callback=None) -> QtControl:
        edit = QtWidgets.QLineEdit(value or "")
        row_widget = row(folder.layout(), label, edit)
        control = QtControl(folder, None, edit, row_widget)
        if callback is not None:
            self.on_change(control, callback)
        return control

    def content_size(self) -> Tuple[int, int]:
        self._layout.activate()
        hint = self.surface.sizeHint()
        return hint.width(), hint.height()

    @staticmethod
    def _fill_combo(combo: QtWidgets.QComboBox, options: Sequence[Option]) -> None:
        combo.clear()
        for label, value in options:
            combo.addItem(label, value)

    @staticmethod
    def _combo_index(combo: QtWidgets.QComboBox, value: Any) -> int:
        for i in range(combo.count()):
            data = combo.itemData(i)
            if data == value or str(data) == str(value):
                return i
        return -1
