import copy
import json
import math
import re
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from loguru import logger

from ..errors import NotFoundError, PresetImportError, ProtectedEntryError, ValidationError
from .config import (
    FALLBACK_DEFAULT_CONTROLS,
    FV3_VISUALIZER_LABEL,
    PRESET_PRECISION,
    STORAGE_KEYS,
)
from .storage import LocalStorage

BUILTIN_DIR = Path(__file__).resolve().parent / "spectrum_filters"

Presets = Dict[str, Dict[str, Any]]


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "preset"


def round_params(values: Optional[Mapping[str, Any]], precision: int = PRESET_PRECISION) -> Dict[str, Any]:
    """Round finite numbers so exported files carry no float noise."""

    out: Dict[str, Any] = {}
    for key, value in (values or {}).items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            out[key] = copy.deepcopy(value)
        elif isinstance(value, float) and math.isfinite(value):
            out[key] = round(value, precision)
        else:
            out[key] = value
    return out


def _controls_of(raw: Any) -> Optional[dict]:
    if isinstance(raw, dict) and isinstance(raw.get("controls"), dict):
        return raw["controls"]
    return raw if isinstance(raw, dict) else None


def load_builtin_presets(directory: Optional[Path] = None) -> Presets:
    """Read the bundled spectrum filters listed in ``index.json``.

    Unreadable files are skipped. With no usable index the loader falls back
    to ``default.json`` then to the hard-coded default controls.
    """

    base = Path(directory) if directory is not None else BUILTIN_DIR
    presets: Presets = {}
    try:
        files = json.loads((base / "index.json").read_text(encoding="utf-8"))
        if not isinstance(files, list):
            raise ValueError("index.json must list file names")
    except (OSError, ValueError) as exc:
        logger.warning("spectrum filter index unusable in {}: {}", base, exc)
        files = []

    for file_name in files:
        path = base / str(file_name)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("failed to load spectrum filter {}: {}", path.name, exc)
            continue
        controls = _controls_of(raw)
        if controls is None:
            continue
        name = raw.get("name") if isinstance(raw.get("name"), str) else re.sub(r"\.json$", "", str(file_name), flags=re.I)
        presets[name] = dict(controls)

    if presets:
        return presets

    try:
        raw = json.loads((base / "default.json").read_text(encoding="utf-8"))
        controls = _controls_of(raw)
        if controls is None:
            raise ValueError("default preset has no controls")
        name = raw.get("name") if isinstance(raw.get("name"), str) else "Default"
        return {name: dict(controls)}
    except (OSError, ValueError) as exc:
        logger.warning("default spectrum filter load failed: {}", exc)
        return {"Default": dict(FALLBACK_DEFAULT_CONTROLS)}


class PresetStore:
    """Built-in presets merged with the user's own, user entries winning.

    Only the user collection is ever written. The built-in collection is read
    once, on first use, through ``builtin_loader``.
    """

    def __init__(self, storage: LocalStorage, builtin_loader: Optional[Callable[[], Presets]] = None):
        self.storage = storage
        self._builtin_loader = builtin_loader
        self._builtin: Presets = {}
        self._builtin_loaded = False
        self._user: Presets = self._read_user()

    # ------------------------------------------------------------------ utils
    def _read_user(self) -> Presets:
        raw = self.storage.get_json(STORAGE_KEYS["fv3_presets"], {})
        if not isinstance(raw, dict):
            return {}
        return {str(name): dict(values) for name, values in raw.items() if isinstance(values, dict)}

    def _write_user(self) -> None:
        self.storage.set_json(STORAGE_KEYS["fv3_presets"], self._user)

    def ensure_builtin(self) -> Presets:
        if self._builtin_loaded:
            return self._builtin
        self._builtin_loaded = True
        if self._builtin_loader is None:
            return self._builtin
        try:
            loaded = self._builtin_loader() or {}
            self._builtin = {str(k): dict(v) for k, v in loaded.items() if isinstance(v, Mapping)}
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("built-in presets unavailable, using saved presets only: {}", exc)
            self._builtin = {}
        return self._builtin

    # ------------------------------------------------------------------ catalog
    def list(self) -> Presets:
        builtin = self.ensure_builtin()
        merged: Presets = {name: copy.deepcopy(values) for name, values in builtin.items()}
        for name, values in self._user.items():
            merged[name] = copy.deepcopy(values)
        return merged

    def names(self):
        return list(self.list().keys())

    def get(self, name: str) -> Optional[Dict[str, Any]]:
        return self.list().get(name)

    def is_builtin(self, name: str) -> bool:
        return name in self.ensure_builtin()

    def is_user(self, name: str) -> bool:
        return name in self._user

    # ------------------------------------------------------------------ mutations
    def save(self, name: str, values: Mapping[str, Any]) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Enter a preset name first.")
        self._user[name] = round_params(values)
        self._write_user()
        self.select(name)
        return name

    def delete(self, name: str) -> None:
        name = (name or "").strip()
        if name not in self._user:
            if self.is_builtin(name):
                raise ProtectedEntryError("Built-in presets cannot be deleted.")
            raise NotFoundError("Preset not found.")
        del self._user[name]
        self._write_user()
        if self.is_builtin(name):
            # la surcharge utilisateur est partie, l'entrée intégrée reste
            raise ProtectedEntryError(f'"{name}" is built-in; only your override was deleted.')
        if self.selected == name:
            names = self.names()
            self.select(names[0] if names else "")

    def export(self, name: str, visualizer: str = FV3_VISUALIZER_LABEL) -> str:
        values = self.get(name)
        if values is None:
            raise NotFoundError("Preset not found.")
        return self.export_values(name, values, visualizer)

    @staticmethod
    def export_values(name: str, values: Mapping[str, Any], visualizer: str = FV3_VISUALIZER_LABEL) -> str:
        data = {
            "name": (name or "").strip() or "preset",
            "visualizer": visualizer,
            "controls": round_params(values),
        }
        return json.dumps(data, ensure_ascii=False, indent=2)

    @staticmethod
    def export_filename(name: str) -> str:
        return f"fv3-preset-{_slugify(name)}.json"

    def import_preset(self, blob: str, fallback_name: str = "Imported") -> Tuple[str, Dict[str, Any]]:
        try:
            parsed = json.loads(blob)
        except (TypeError, ValueError) as exc:
            raise PresetImportError(f"Failed to load preset: {exc}") from exc
        controls = _controls_of(parsed)
        if controls is None:
            raise PresetImportError("Failed to load preset: expected a JSON object")
        name = parsed.get("name") if isinstance(parsed.get("name"), str) and parsed["name"].strip() else fallback_name
        name = self.save(name, controls)
        return name, dict(self._user[name])

    # ------------------------------------------------------------------ selection
    @property
    def selected(self) -> str:
        return self.storage.get_item(STORAGE_KEYS["fv3_selected_preset"]) or ""

    def select(self, name: str) -> None:
        if name:
            self.storage.set_item(STORAGE_KEYS["fv3_selected_preset"], name)
        else:
            self.storage.remove_item(STORAGE_KEYS["fv3_selected_preset"])

    def resolve_selection(self) -> str:
        names = self.names()
        current = self.selected
        if current in names:
            return current
        fallback = names[0] if names else ""
        self.select(fallback)
        return fallback
