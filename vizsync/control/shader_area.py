from __future__ import annotations

from typing import Any, Dict, Mapping

from loguru import logger

from ..channel import SET_SHADER_UNIFORM
from .config import STORAGE_KEYS
from .feature_area import FeatureArea
from .schema import CapabilityDescriptor, ParamKind, ParamSpec
from .storage import LocalStorage


class ShaderArea(FeatureArea):
    """Shader uniforms, each remembered per shader across sessions."""

    def __init__(self, toolkit, send, state, storage: LocalStorage, on_layout=None):
        super().__init__(toolkit, send, state, on_layout)
        self.storage = storage

    def storage_key(self, uniform: str) -> str:
        return f"{STORAGE_KEYS['shader_prefix']}:{self.area}:{uniform}"

    def initial_values(self, descriptor: CapabilityDescriptor, values: Mapping[str, Any]) -> Dict[str, Any]:
        initial: Dict[str, Any] = {}
        for spec in descriptor.params:
            stored = self.storage.get_item(self.storage_key(spec.key))
            value = None
            if stored is not None:
                try:
                    value = int(float(stored)) if spec.kind is ParamKind.DROPDOWN else float(stored)
                except ValueError:
                    logger.warning("stored value {!r} for {} unreadable, using default", stored, spec.key)
            initial[spec.key] = spec.initial() if value is None else value
        return initial

    def after_build(self) -> None:
        # Le shader ne connaît pas encore nos valeurs : on les envoie toutes
        values = self.state.feature(self.area)
        for spec in self.descriptor.ordered_params():
            self.send(SET_SHADER_UNIFORM, uniform=spec.key, value=values.get(spec.key))

    def on_param_changed(self, spec: ParamSpec, value: Any) -> None:
        self.storage.set_item(self.storage_key(spec.key), value)
        super().on_param_changed(spec, value)

    def send_param(self, spec: ParamSpec, value: Any) -> None:
        self.send(SET_SHADER_UNIFORM, uniform=spec.key, value=value)
