"""Panel-side mirror of what the host last announced."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional


@dataclass
class QualityConfig:
    antialias: bool = False
    pixel_ratio: float = 1.0

    def merge(self, antialias: Any = None, pixel_ratio: Any = None) -> bool:
        """Take the fields that carry a usable value. Returns True on change."""

        changed = False
        if isinstance(antialias, bool) and antialias != self.antialias:
            self.antialias = antialias
            changed = True
        if (
            isinstance(pixel_ratio, (int, float))
            and not isinstance(pixel_ratio, bool)
            and math.isfinite(pixel_ratio)
            and float(pixel_ratio) != self.pixel_ratio
        ):
            self.pixel_ratio = float(pixel_ratio)
            changed = True
        return changed

    def to_payload(self) -> Dict[str, Any]:
        return {"antialias": self.antialias, "pixelRatio": self.pixel_ratio}


@dataclass
class SyncState:
    visualizer_list: List[str] = field(default_factory=list)
    active_visualizer: str = ""
    quality: QualityConfig = field(default_factory=QualityConfig)
    feature_config: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def apply_init(self, visualizer_list: Iterable[str], active: Optional[str]) -> None:
        self.set_visualizer_list(visualizer_list)
        self.set_active(active)

    def set_visualizer_list(self, visualizer_list: Iterable[str]) -> None:
        self.visualizer_list = [str(name) for name in (visualizer_list or [])]

    def set_active(self, name: Optional[str]) -> None:
        self.active_visualizer = "" if name is None else str(name)

    def replace_feature(self, area: str, values: Optional[Mapping[str, Any]]) -> None:
        self.feature_config[area] = dict(values or {})

    def clear_feature(self, area: str) -> None:
        self.feature_config.pop(area, None)

    def set_param(self, area: str, key: str, value: Any) -> None:
        self.feature_config.setdefault(area, {})[key] = value

    def merge_feature(self, area: str, values: Optional[Mapping[str, Any]]) -> None:
        self.feature_config.setdefault(area, {}).update(values or {})

    def feature(self, area: str) -> Dict[str, Any]:
        return dict(self.feature_config.get(area, {}))
