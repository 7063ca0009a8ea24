# vizsync/control/control_window.py
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from loguru import logger
from PyQt5 import QtCore, QtWidgets

from .. import channel as msgs
from ..channel import ChannelEndpoint, Message
from ..handshake import HandshakeManager
from ..router import MessageRouter
from .config import (
    FOLDER_TITLES,
    PANEL_TITLE,
    PIXEL_RATIO_OPTIONS,
    READY_INTERVAL_MS,
    TOOLTIPS,
)
from .layout import LayoutFeedback
from .parametric import ParametricArea
from .preset_manager import PresetStore
from .schema import ParamKind, ParamSpec, parametric_descriptor, shader_descriptor
from .shader_area import ShaderArea
from .state import SyncState
from .storage import LocalStorage
from .widgets import ControlToolkit, QtToolkit


class ControlPanel(QtCore.QObject):
    """Panel side of the channel.

    Owns the handshake, the router and the mirror of the host state, and
    builds the control surface through ``toolkit`` once ``init`` arrives.
    """

    surfaceBuilt = QtCore.pyqtSignal()
    collapsedChanged = QtCore.pyqtSignal(bool)

    def __init__(
        self,
        endpoint: ChannelEndpoint,
        toolkit: ControlToolkit,
        storage: LocalStorage,
        builtin_loader: Optional[Callable[[], dict]] = None,
        notifier: Optional[Callable[[str, str], None]] = None,
        ready_interval_ms: int = READY_INTERVAL_MS,
        ask_save_path: Optional[Callable[[str], Optional[Path]]] = None,
        ask_open_path: Optional[Callable[[], Optional[Path]]] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        parent=None,
    ):
        super().__init__(parent)
        self.endpoint = endpoint
        self.toolkit = toolkit
        self.storage = storage
        self.notifier = notifier
        self.state = SyncState()
        self.store = PresetStore(storage, builtin_loader)
        self.router = MessageRouter(endpoint.source, lambda: self.surface_built)
        self.handshake = HandshakeManager(self.send, ready_interval_ms, parent=self)
        self.layout = LayoutFeedback(toolkit.content_size, self.send, parent=self)
        self.fv3_area = ParametricArea(
            toolkit, self.send, self.state, self.store,
            on_layout=self.layout.notify,
            notify_error=self.show_error,
            ask_save_path=ask_save_path,
            ask_open_path=ask_open_path,
            confirm=confirm,
        )
        self.shader_area = ShaderArea(toolkit, self.send, self.state, storage, on_layout=self.layout.notify)

        self.folders: Dict[str, Any] = {}
        self.visualizer_control: Any = None
        self.antialias_control: Any = None
        self.pixel_ratio_control: Any = None
        self.collapsed = False

        self.router.register(msgs.INIT, self._on_init)
        self.router.register(msgs.VISUALIZER_CHANGED, self._on_visualizer_changed, buffered=True)
        self.router.register(msgs.QUALITY_UPDATE, self._on_quality_update, buffered=True)
        self.router.register(msgs.VISUALIZER_LIST_UPDATE, self._on_visualizer_list_update)
        self.router.register(msgs.FV3_PARAMS, self._on_fv3_params)

        endpoint.listen(self.router.dispatch)
        self.handshake.start()

    @property
    def surface_built(self) -> bool:
        return bool(self.folders)

    def send(self, msg_type: str, **payload: Any) -> Message:
        return self.endpoint.send(msg_type, **payload)

    def show_error(self, title: str, message: str) -> None:
        if self.notifier is not None:
            self.notifier(title, message)
        else:
            logger.warning("{}: {}", title, message)

    def close(self) -> None:
        self.handshake.acknowledge()
        self.layout.stop()
        self.endpoint.close(self.router.dispatch)
        self.fv3_area.teardown()
        self.shader_area.teardown()

    # ---- handlers
    def _on_init(self, msg: Message) -> None:
        self.handshake.acknowledge()
        self.state.apply_init(msg.get("visualizerList") or [], msg.get("activeVisualizer") or "")
        if self.surface_built:
            # init répété : seule la liste peut avoir changé
            self.refresh_visualizer_options()
            return
        self.build_surface()
        self.router.replay()
        self.layout.notify()

    def _on_visualizer_changed(self, msg: Message) -> None:
        name = msg.get("name") or ""
        self.state.set_active(name)
        if self.visualizer_control is not None:
            self.toolkit.set_value(self.visualizer_control, name)
        self.fv3_area.teardown()
        self.shader_area.teardown()
        if msg.get("hasFV3") and isinstance(msg.get("fv3Params"), Mapping):
            self.fv3_area.build(parametric_descriptor(), msg["fv3Params"])
        if msg.get("hasShaderConfig") and msg.get("shaderConfig"):
            descriptor = shader_descriptor(msg["shaderConfig"])
            if descriptor is not None:
                self.shader_area.build(descriptor)
        if self.collapsed:
            for folder in self._all_folders():
                self.toolkit.set_folder_visible(folder, False)
        self.layout.notify()

    def _on_quality_update(self, msg: Message) -> None:
        self.state.quality.merge(msg.get("antialias"), msg.get("pixelRatio"))
        self.sync_quality_controls()

    def _on_visualizer_list_update(self, msg: Message) -> None:
        self.state.set_visualizer_list(msg.get("visualizerList") or [])
        self.refresh_visualizer_options()

    def _on_fv3_params(self, msg: Message) -> None:
        params = msg.get("params")
        if not isinstance(params, Mapping):
            return
        if self.fv3_area.built:
            self.state.merge_feature(self.fv3_area.area, params)
            self.fv3_area.sync(params)

    # ---- surface
    def build_surface(self) -> None:
        switcher = self.toolkit.create_folder(FOLDER_TITLES["switcher"])
        self.folders["switcher"] = switcher
        self.visualizer_control = self.toolkit.create(switcher, self._visualizer_spec())
        self.toolkit.set_value(self.visualizer_control, self.state.active_visualizer)
        self.toolkit.on_change(self.visualizer_control, self._on_visualizer_selected)

        quality = self.toolkit.create_folder(FOLDER_TITLES["quality"])
        self.folders["quality"] = quality
        self.antialias_control = self.toolkit.create(
            quality, ParamSpec(key="antialias", label="Antialiasing", kind=ParamKind.TOGGLE, default=False)
        )
        self.toolkit.on_change(self.antialias_control, self._on_antialias_changed)
        self.pixel_ratio_control = self.toolkit.create(
            quality,
            ParamSpec(key="pixelRatio", label="PixelRatio", kind=ParamKind.DROPDOWN,
                      options=PIXEL_RATIO_OPTIONS, default=1.0),
        )
        self.toolkit.on_change(self.pixel_ratio_control, self._on_pixel_ratio_changed)
        self.toolkit.add_action(quality, "Save As Global PQ Defaults", lambda: self.send(msgs.SAVE_QUALITY_DEFAULTS))
        self.toolkit.add_action(quality, "Clear Stored Local PQ Values", lambda: self.send(msgs.CLEAR_QUALITY_OVERRIDES))
        self.sync_quality_controls()
        logger.info("control surface built ({} visualizers)", len(self.state.visualizer_list))
        self.surfaceBuilt.emit()

    def _visualizer_spec(self) -> ParamSpec:
        names = tuple((n, n) for n in self.state.visualizer_list)
        return ParamSpec(key="visualizer", label="Select Visualizer", kind=ParamKind.DROPDOWN, options=names)

    def refresh_visualizer_options(self) -> None:
        if self.visualizer_control is None:
            return
        self.toolkit.set_options(self.visualizer_control, [(n, n) for n in self.state.visualizer_list])
        self.toolkit.set_value(self.visualizer_control, self.state.active_visualizer)
        self.layout.notify()

    def sync_quality_controls(self) -> None:
        if self.antialias_control is None:
            return
        self.toolkit.set_value(self.antialias_control, self.state.quality.antialias)
        self.toolkit.set_value(self.pixel_ratio_control, self.state.quality.pixel_ratio)

    def set_collapsed(self, collapsed: bool) -> None:
        collapsed = bool(collapsed)
        if collapsed == self.collapsed:
            return
        self.collapsed = collapsed
        for folder in self._all_folders():
            self.toolkit.set_folder_visible(folder, not collapsed)
        self.collapsedChanged.emit(collapsed)
        self.layout.notify()

    def toggle_collapsed(self) -> None:
        self.set_collapsed(not self.collapsed)

    def _all_folders(self):
        folders = list(self.folders.values())
        for area in (self.fv3_area, self.shader_area):
            if area.folder is not None:
                folders.append(area.folder)
        return folders

    # ---- callbacks
    def _on_visualizer_selected(self, value: Any) -> None:
        if value:
            self.send(msgs.SELECT_VISUALIZER, name=str(value))

    def _on_antialias_changed(self, value: Any) -> None:
        self.send(msgs.SET_QUALITY, antialias=bool(value))

    def _on_pixel_ratio_changed(self, value: Any) -> None:
        try:
            ratio = float(value)
        except (TypeError, ValueError):
            logger.warning("ignored pixel ratio {!r}", value)
            return
        self.send(msgs.SET_QUALITY, pixelRatio=ratio)


class ControlWindow(QtWidgets.QMainWindow):
    """Detached window hosting a :class:`ControlPanel` on a Qt surface."""

    def __init__(self, endpoint: ChannelEndpoint, storage: LocalStorage,
                 builtin_loader=None, ready_interval_ms: int = READY_INTERVAL_MS):
        super().__init__(None)
        self.setWindowTitle(PANEL_TITLE)

        self.btn_collapse = QtWidgets.QToolButton()
        self.btn_collapse.setText("X")
        self.btn_collapse.setToolTip("Close controls")
        self.btn_collapse.setCursor(QtCore.Qt.PointingHandCursor)

        header = QtWidgets.QHBoxLayout()
        header.setContentsMargins(8, 6, 8, 0)
        title = QtWidgets.QLabel(PANEL_TITLE)
        title.setObjectName("PanelTitle")
        header.addWidget(title, 1)
        header.addWidget(self.btn_collapse, 0)

        self.surface = QtWidgets.QWidget()
        self.toolkit = QtToolkit(self.surface, tooltips=TOOLTIPS)
        scroll = QtWidgets.QScrollArea()
        scroll.setWidget(self.surface)
        scroll.setWidgetResizable(True)
        scroll.setHorizontalScrollBarPolicy(QtCore.Qt.ScrollBarAlwaysOff)
        scroll.setVerticalScrollBarPolicy(QtCore.Qt.ScrollBarAsNeeded)
        scroll.setFrameShape(QtWidgets.QFrame.NoFrame)

        central = QtWidgets.QWidget()
        root = QtWidgets.QVBoxLayout(central)
        root.setContentsMargins(0, 0, 0, 0)
        root.addLayout(header)
        root.addWidget(scroll, 1)
        self.setCentralWidget(central)

        self.panel = ControlPanel(
            endpoint, self.toolkit, storage,
            builtin_loader=builtin_loader,
            notifier=self._warn,
            ready_interval_ms=ready_interval_ms,
            ask_save_path=self._ask_save_path,
            ask_open_path=self._ask_open_path,
            confirm=self._confirm,
            parent=self,
        )
        self.surface.installEventFilter(self.panel.layout)
        self.btn_collapse.clicked.connect(lambda checked=False: self.panel.toggle_collapsed())
        self.panel.collapsedChanged.connect(self._on_collapsed)
        self.panel.surfaceBuilt.connect(lambda: self.statusBar().showMessage("Connected to host", 3000))
        self.statusBar().showMessage("Waiting for host…")

    def _on_collapsed(self, collapsed: bool):
        self.btn_collapse.setText("O" if collapsed else "X")
        self.btn_collapse.setToolTip("Show controls" if collapsed else "Close controls")

    def _warn(self, title: str, message: str):
        QtWidgets.QMessageBox.warning(self, title, message)

    def _ask_save_path(self, suggested: str) -> Optional[Path]:
        path, _ = QtWidgets.QFileDialog.getSaveFileName(self, "Download preset", suggested, "JSON (*.json)")
        return Path(path) if path else None

    def _confirm(self, question: str) -> bool:
        answer = QtWidgets.QMessageBox.question(
            self, "Presets", question, QtWidgets.QMessageBox.Yes | QtWidgets.QMessageBox.No, QtWidgets.QMessageBox.No
        )
        return answer == QtWidgets.QMessageBox.Yes

    def _ask_open_path(self) -> Optional[Path]:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(self, "Upload preset", "", "JSON (*.json)")
        return Path(path) if path else None

    def closeEvent(self, event):
        self.panel.close()
        super().closeEvent(event)
