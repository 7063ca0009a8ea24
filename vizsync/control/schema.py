"""Parameter descriptors for the data-driven control areas."""

from __future__ import annotations

import locale
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from .config import FALLBACK_DEFAULT_CONTROLS, FOLDER_TITLES, FV3_CONTROLS

SCHEMA_VERSION = 1

Option = Tuple[str, Any]

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


class ParamKind(str, Enum):
    SLIDER = "slider"
    TOGGLE = "toggle"
    DROPDOWN = "dropdown"


def normalize_options(options: Optional[Iterable[Any]]) -> Tuple[Option, ...]:
    """Accept plain values, ``(label, value)`` pairs or ``{label, value}`` dicts."""

    pairs: List[Option] = []
    for opt in options or ():
        if isinstance(opt, Mapping):
            value = opt.get("value")
            pairs.append((str(opt.get("label", value)), value))
        elif isinstance(opt, (tuple, list)) and len(opt) == 2:
            pairs.append((str(opt[0]), opt[1]))
        else:
            pairs.append((str(opt), opt))
    return tuple(pairs)


def _label_key(label: str) -> str:
    try:
        return locale.strxfrm(label.casefold())
    except (ValueError, OSError):
        return label.casefold()


@dataclass(frozen=True)
class ParamSpec:
    key: str
    label: str
    kind: ParamKind
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    step: Optional[float] = None
    options: Tuple[Option, ...] = ()
    default: Any = None

    def option_values(self) -> List[Any]:
        return [value for _, value in self.options]

    def initial(self) -> Any:
        if self.default is not None:
            return self.default
        if self.kind is ParamKind.TOGGLE:
            return False
        if self.kind is ParamKind.DROPDOWN:
            return self.options[0][1] if self.options else None
        return self.minimum if self.minimum is not None else 0.0

    def coerce(self, value: Any) -> Any:
        """Convert a raw control value to the value stored and sent upstream."""

        if self.kind is ParamKind.TOGGLE:
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in _TRUE_STRINGS:
                    return True
                if lowered in _FALSE_STRINGS:
                    return False
                raise ValueError(f"{self.key}: not a boolean: {value!r}")
            return bool(value)

        if self.kind is ParamKind.DROPDOWN:
            for _, option in self.options:
                if option == value and type(option) is type(value):
                    return option
            for _, option in self.options:
                if str(option) == str(value):
                    return option
            raise ValueError(f"{self.key}: {value!r} is not one of {self.option_values()!r}")

        if isinstance(value, bool):
            raise ValueError(f"{self.key}: expected a number, got {value!r}")
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"{self.key}: value must be finite")
        if isinstance(value, int) or (number.is_integer() and self._integral_step()):
            return int(number)
        return number

    def _integral_step(self) -> bool:
        return self.step is not None and float(self.step).is_integer()


@dataclass(frozen=True)
class CapabilityDescriptor:
    area: str
    title: str
    params: Tuple[ParamSpec, ...] = field(default_factory=tuple)
    version: int = SCHEMA_VERSION
    sort_params: bool = True

    def ordered_params(self) -> List[ParamSpec]:
        if not self.sort_params:
            return list(self.params)
        # sorted() est stable : deux libellés égaux gardent leur ordre déclaré
        return sorted(self.params, key=lambda spec: _label_key(spec.label))

    def get(self, key: str) -> Optional[ParamSpec]:
        for spec in self.params:
            if spec.key == key:
                return spec
        return None

    def keys(self) -> List[str]:
        return [spec.key for spec in self.params]

    def defaults(self) -> dict:
        return {spec.key: spec.initial() for spec in self.params}


def spec_from_dict(raw: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None) -> ParamSpec:
    kind = ParamKind(raw["type"])
    key = str(raw["key"])
    default = raw.get("default")
    if default is None and defaults is not None:
        default = defaults.get(key)
    return ParamSpec(
        key=key,
        label=str(raw.get("label", key)),
        kind=kind,
        minimum=raw.get("min"),
        maximum=raw.get("max"),
        step=raw.get("step"),
        options=normalize_options(raw.get("options")),
        default=default,
    )


def parametric_descriptor(controls: Sequence[Mapping[str, Any]] = FV3_CONTROLS) -> CapabilityDescriptor:
    params = tuple(spec_from_dict(raw, FALLBACK_DEFAULT_CONTROLS) for raw in controls)
    return CapabilityDescriptor(area="fv3", title=FOLDER_TITLES["fv3"], params=params)


def shader_descriptor(shader_config: Optional[Mapping[str, Any]]) -> Optional[CapabilityDescriptor]:
    """Build the descriptor of a shader's ``{name, controls}`` block.

    Keys are the uniform names. Controls keep the shader's declaration order.
    Returns ``None`` when the shader exposes no usable control.
    """

    if not isinstance(shader_config, Mapping):
        return None
    params: List[ParamSpec] = []
    for control in shader_config.get("controls") or ():
        if not isinstance(control, Mapping) or not control.get("uniform"):
            continue
        ctype = control.get("type")
        label = str(control.get("name") or control["uniform"])
        if ctype == "select":
            params.append(ParamSpec(
                key=str(control["uniform"]),
                label=label,
                kind=ParamKind.DROPDOWN,
                options=normalize_options(control.get("options")),
                default=control.get("default"),
            ))
        elif ctype == "slider":
            params.append(ParamSpec(
                key=str(control["uniform"]),
                label=label,
                kind=ParamKind.SLIDER,
                minimum=control.get("min", 0.0),
                maximum=control.get("max", 1.0),
                step=control.get("step"),
                default=control.get("default"),
            ))
        else:
            logger.debug("shader control type {!r} not supported, skipped", ctype)
    if not params:
        return None
    name = shader_config.get("name") or ""
    return CapabilityDescriptor(
        area=str(name),
        title=str(name or FOLDER_TITLES["shader"]),
        params=tuple(params),
        sort_params=False,
    )
