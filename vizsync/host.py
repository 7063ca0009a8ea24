"""Host side of the channel: the catalog of visualizers and its quality state."""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from loguru import logger
from PyQt5 import QtCore, QtWidgets

from . import channel as msgs
from .channel import ChannelEndpoint, Message
from .control.config import FALLBACK_DEFAULT_CONTROLS, FV3_VISUALIZER_LABEL, QUALITY_DEFAULTS
from .router import MessageRouter

PIXEL_RATIO_RANGE = (0.25, 2.0)


@dataclass
class VisualizerInfo:
    name: str
    fv3_params: Optional[Dict[str, Any]] = None
    shader_config: Optional[Dict[str, Any]] = None
    uniforms: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_fv3(self) -> bool:
        return self.fv3_params is not None

    @property
    def has_shader_config(self) -> bool:
        return bool(self.shader_config)

    def changed_payload(self) -> Dict[str, Any]:
        return dict(
            name=self.name,
            hasFV3=self.has_fv3,
            fv3Params=copy.deepcopy(self.fv3_params) if self.has_fv3 else None,
            hasShaderConfig=self.has_shader_config,
            shaderConfig=copy.deepcopy(self.shader_config) if self.has_shader_config else None,
        )


def default_visualizers() -> List[VisualizerInfo]:
    """Demo catalog used by the command-line launcher."""

    return [
        VisualizerInfo("Frequency Visualization 2"),
        VisualizerInfo(FV3_VISUALIZER_LABEL, fv3_params=dict(FALLBACK_DEFAULT_CONTROLS)),
        VisualizerInfo(
            "Simple Plasma",
            shader_config={
                "name": "Simple Plasma",
                "controls": [
                    {"type": "select", "name": "Palette", "uniform": "uPalette", "default": 0,
                     "options": [{"label": "Ember", "value": 0}, {"label": "Ocean", "value": 1},
                                 {"label": "Acid", "value": 2}]},
                    {"type": "slider", "name": "Speed", "uniform": "uSpeed", "default": 1.0, "min": 0.0, "max": 4.0},
                    {"type": "slider", "name": "Scale", "uniform": "uScale", "default": 1.5, "min": 0.25, "max": 6.0},
                ],
            },
        ),
        VisualizerInfo("Sphere Lines"),
    ]


def snap_pixel_ratio(value: float, bounds: Tuple[float, float] = PIXEL_RATIO_RANGE) -> float:
    low, high = bounds
    return min(high, max(low, float(value)))


class HostSession(QtCore.QObject):
    """Answer the panel handshake and apply what the panel edits.

    Quality is a pair of global defaults plus per-visualizer overrides, the
    effective value being the defaults updated by the active override.
    """

    stateChanged = QtCore.pyqtSignal(dict)

    def __init__(
        self,
        endpoint: ChannelEndpoint,
        visualizers: Iterable[VisualizerInfo],
        active: Optional[str] = None,
        quality: Optional[Mapping[str, Any]] = None,
        parent=None,
    ):
        super().__init__(parent)
        self.endpoint = endpoint
        self.visualizers: List[VisualizerInfo] = list(visualizers)
        names = self.names()
        self.active = active if active in names else (names[0] if names else "")
        self.quality_defaults: Dict[str, Any] = dict(QUALITY_DEFAULTS)
        self.quality_defaults.update(quality or {})
        self.quality_overrides: Dict[str, Dict[str, Any]] = {}
        self.panel_size: Optional[Tuple[int, int]] = None
        self.ready_count = 0

        self.router = MessageRouter(endpoint.source, lambda: True)
        self.router.register(msgs.READY, self._on_ready)
        self.router.register(msgs.SELECT_VISUALIZER, self._on_select_visualizer)
        self.router.register(msgs.SET_QUALITY, self._on_set_quality)
        self.router.register(msgs.SAVE_QUALITY_DEFAULTS, self._on_save_quality_defaults)
        self.router.register(msgs.CLEAR_QUALITY_OVERRIDES, self._on_clear_quality_overrides)
        self.router.register(msgs.SET_FV3_PARAM, self._on_set_fv3_param)
        self.router.register(msgs.APPLY_FV3_PARAMS, self._on_apply_fv3_params)
        self.router.register(msgs.SET_SHADER_UNIFORM, self._on_set_shader_uniform)
        self.router.register(msgs.RESIZE, self._on_resize)
        endpoint.listen(self.router.dispatch)

    # ---- lecture
    def names(self) -> List[str]:
        return [v.name for v in self.visualizers]

    def visualizer(self, name: Optional[str] = None) -> Optional[VisualizerInfo]:
        name = self.active if name is None else name
        for info in self.visualizers:
            if info.name == name:
                return info
        return None

    def quality(self, name: Optional[str] = None) -> Dict[str, Any]:
        effective = dict(self.quality_defaults)
        effective.update(self.quality_overrides.get(self.active if name is None else name, {}))
        effective["pixelRatio"] = snap_pixel_ratio(effective["pixelRatio"])
        return effective

    def snapshot(self) -> Dict[str, Any]:
        info = self.visualizer()
        return {
            "active": self.active,
            "quality": self.quality(),
            "fv3Params": copy.deepcopy(info.fv3_params) if info and info.has_fv3 else None,
            "uniforms": dict(info.uniforms) if info else {},
            "panelSize": self.panel_size,
        }

    # ---- émission
    def send(self, msg_type: str, **payload: Any) -> Message:
        return self.endpoint.send(msg_type, **payload)

    def announce(self) -> None:
        info = self.visualizer()
        if info is not None:
            self.send(msgs.VISUALIZER_CHANGED, **info.changed_payload())
        self.send(msgs.QUALITY_UPDATE, **self.quality())

    def switch_visualizer(self, name: str) -> bool:
        if self.visualizer(name) is None:
            logger.warning("unknown visualizer {!r} ignored", name)
            return False
        self.active = name
        self.announce()
        self._changed()
        return True

    def set_visualizers(self, visualizers: Iterable[VisualizerInfo]) -> None:
        self.visualizers = list(visualizers)
        if self.visualizer() is None:
            names = self.names()
            self.active = names[0] if names else ""
        self.send(msgs.VISUALIZER_LIST_UPDATE, visualizerList=self.names())
        self._changed()

    def push_fv3_params(self, params: Optional[Mapping[str, Any]] = None) -> None:
        info = self.visualizer()
        if info is None or not info.has_fv3:
            return
        if params:
            info.fv3_params.update(params)
        self.send(msgs.FV3_PARAMS, params=dict(info.fv3_params))
        self._changed()

    # ---- handlers
    def _on_ready(self, msg: Message) -> None:
        # Chaque ready reçoit un init : le panneau ignore les doublons
        self.ready_count += 1
        self.send(msgs.INIT, visualizerList=self.names(), activeVisualizer=self.active)
        self.announce()

    def _on_select_visualizer(self, msg: Message) -> None:
        name = msg.get("name")
        if isinstance(name, str) and name != self.active:
            self.switch_visualizer(name)

    def _on_set_quality(self, msg: Message) -> None:
        override = self.quality_overrides.setdefault(self.active, {})
        if "antialias" in msg:
            override["antialias"] = bool(msg["antialias"])
        ratio = msg.get("pixelRatio")
        if isinstance(ratio, (int, float)) and not isinstance(ratio, bool) and math.isfinite(ratio):
            override["pixelRatio"] = snap_pixel_ratio(ratio)
        self.send(msgs.QUALITY_UPDATE, **self.quality())
        self._changed()

    def _on_save_quality_defaults(self, msg: Message) -> None:
        self.quality_defaults = self.quality()
        logger.info("quality defaults saved: {}", self.quality_defaults)
        self._changed()

    def _on_clear_quality_overrides(self, msg: Message) -> None:
        self.quality_overrides.pop(self.active, None)
        self.send(msgs.QUALITY_UPDATE, **self.quality())
        self._changed()

    def _on_set_fv3_param(self, msg: Message) -> None:
        info = self.visualizer()
        key = msg.get("key")
        if info is None or not info.has_fv3 or not key:
            return
        info.fv3_params[key] = msg.get("value")
        self._changed()

    def _on_apply_fv3_params(self, msg: Message) -> None:
        info = self.visualizer()
        params = msg.get("params")
        if info is None or not info.has_fv3 or not isinstance(params, Mapping):
            return
        self.push_fv3_params(params)

    def _on_set_shader_uniform(self, msg: Message) -> None:
        info = self.visualizer()
        uniform = msg.get("uniform")
        if info is None or uniform is None:
            return
        info.uniforms[uniform] = msg.get("value")
        self._changed()

    def _on_resize(self, msg: Message) -> None:
        try:
            self.panel_size = (int(msg["width"]), int(msg["height"]))
        except (KeyError, TypeError, ValueError):
            logger.debug("resize without usable size: {}", dict(msg))
            return
        self._changed()

    def _changed(self) -> None:
        self.stateChanged.emit(self.snapshot())


class HostWindow(QtWidgets.QWidget):
    """Minimal stand-in for the renderer: shows what the host currently runs."""

    def __init__(self, session: HostSession):
        super().__init__(None)
        self.setWindowTitle("vizsync host")
        self.session = session
        self.lbl_active = QtWidgets.QLabel()
        self.lbl_active.setObjectName("HostActive")
        self.lbl_quality = QtWidgets.QLabel()
        self.lbl_params = QtWidgets.QLabel()
        self.lbl_params.setWordWrap(True)
        self.lbl_params.setTextInteractionFlags(QtCore.Qt.TextSelectableByMouse)

        layout = QtWidgets.QVBoxLayout(self)
        layout.addWidget(self.lbl_active)
        layout.addWidget(self.lbl_quality)
        layout.addWidget(self.lbl_params, 1)
        self.resize(480, 360)

        session.stateChanged.connect(self.on_state)
        self.on_state(session.snapshot())

    def on_state(self, snapshot: dict):
        self.lbl_active.setText(f"Visualizer: {snapshot.get('active') or '-'}")
        q = snapshot.get("quality") or {}
        self.lbl_quality.setText(f"Antialias: {q.get('antialias')}   PixelRatio: {q.get('pixelRatio')}")
        lines = []
        for key, value in sorted((snapshot.get("fv3Params") or {}).items()):
            lines.append(f"{key} = {value}")
        for key, value in sorted((snapshot.get("uniforms") or {}).items()):
            lines.append(f"{key} = {value}")
        self.lbl_params.setText("\n".join(lines))
