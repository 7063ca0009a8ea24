"""Spectrum filter controls with preset management."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from loguru import logger

from ..channel import APPLY_FV3_PARAMS, SET_FV3_PARAM
from ..errors import NotFoundError, PresetImportError, VizsyncError
from .config import FV3_VISUALIZER_LABEL
from .feature_area import FeatureArea
from .preset_manager import PresetStore
from .schema import ParamKind, ParamSpec


class ParametricArea(FeatureArea):
    """Folder of spectrum filter parameters plus the preset rows.

    Preset operations raise the store's errors. The buttons route them to
    ``notify_error`` so the user sees a dialog instead of a traceback.
    """

    def __init__(
        self,
        toolkit,
        send,
        state,
        store: PresetStore,
        on_layout: Optional[Callable[[], None]] = None,
        notify_error: Optional[Callable[[str, str], None]] = None,
        ask_save_path: Optional[Callable[[str], Optional[Path]]] = None,
        ask_open_path: Optional[Callable[[], Optional[Path]]] = None,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        super().__init__(toolkit, send, state, on_layout)
        self.store = store
        self.notify_error = notify_error
        self.ask_save_path = ask_save_path
        self.ask_open_path = ask_open_path
        self.confirm = confirm
        self.preset_name = ""
        self.load_control: Any = None
        self.name_control: Any = None
        self.editor: Any = None
        self._selection_applied = False
        self._editor_visible = False

    # ---- construction
    def populate(self) -> None:
        self.store.ensure_builtin()
        self._selection_applied = False
        self._editor_visible = False
        load_spec = ParamSpec(
            key="loadPreset",
            label="Load preset",
            kind=ParamKind.DROPDOWN,
            options=tuple((n, n) for n in self.store.names()),
        )
        self.load_control = self.toolkit.create(self.folder, load_spec)
        self.toolkit.on_change(self.load_control, self._on_load_changed)
        self.toolkit.add_action(self.folder, "Edit presets", self.toggle_editor)

        # Éditeur de presets : un dossier à part, caché par défaut
        editor = self.toolkit.create_folder("Edit FV3 Presets")
        self.editor = editor
        self.toolkit.set_folder_visible(editor, False)
        self.track_aux(self._release_editor)
        self.name_control = self.toolkit.add_text(editor, "Save as", self.preset_name, self._on_name_edited)
        self.toolkit.add_action(editor, "Save", lambda: self._user_action(self.save_preset))
        self.toolkit.add_action(editor, "Download", lambda: self._user_action(self.export_preset_to_file))
        self.toolkit.add_action(editor, "Upload", lambda: self._user_action(self.import_preset_from_file))
        self.toolkit.add_action(editor, "Delete", lambda: self._user_action(self.delete_preset))

    def after_build(self) -> None:
        self.refresh_options()

    def _release_editor(self) -> None:
        editor, self.editor = self.editor, None
        self.load_control = None
        self.name_control = None
        self.drop_folder(editor)

    def toggle_editor(self) -> None:
        if self.editor is None:
            return
        self._editor_visible = not self._editor_visible
        self.toolkit.set_folder_visible(self.editor, self._editor_visible)
        self._notify_layout()

    # ---- upstream
    def send_param(self, spec: ParamSpec, value: Any) -> None:
        self.send(SET_FV3_PARAM, key=spec.key, value=value)

    def apply_params(self, params: Mapping[str, Any]) -> None:
        params = dict(params)
        self.state.merge_feature(self.area, params)
        self.sync(params)
        self.send(APPLY_FV3_PARAMS, params=params)

    # ---- presets
    def refresh_options(self) -> None:
        """Rebuild the preset list from the store's current catalog."""

        if self.load_control is None:
            return
        names = self.store.names()
        self.toolkit.set_options(self.load_control, [(n, n) for n in names])
        selected = self.store.resolve_selection()
        if selected:
            self.toolkit.set_value(self.load_control, selected)
        if not self._selection_applied and selected:
            self._selection_applied = True
            self.select_preset(selected)

    def select_preset(self, name: str) -> None:
        values = self.store.get(name)
        if values is None:
            raise NotFoundError("Preset not found.")
        self.apply_params(values)
        self.store.select(name)
        if self.load_control is not None:
            self.toolkit.set_value(self.load_control, name)
        self._set_preset_name(name)

    def save_preset(self, name: Optional[str] = None) -> str:
        saved = self.store.save(self.preset_name if name is None else name, self.current_values())
        self._set_preset_name(saved)
        self.refresh_options()
        return saved

    def delete_preset(self, name: Optional[str] = None) -> None:
        name = self.store.selected if name is None else name
        if not name:
            return
        if self.confirm is not None and not self.confirm(f'Delete preset "{name}"?'):
            return
        try:
            self.store.delete(name)
        finally:
            self.refresh_options()

    def export_preset(self, path: Optional[Path] = None) -> str:
        name = self.preset_name.strip() or "preset"
        text = self.store.export_values(name, self.current_values(), FV3_VISUALIZER_LABEL)
        if path is not None:
            target = Path(path)
            if target.is_dir():
                target = target / self.store.export_filename(name)
            target.write_text(text, encoding="utf-8")
            logger.info("preset {} exported to {}", name, target)
        return text

    def import_preset(self, blob: str, fallback_name: str = "Imported") -> str:
        name, values = self.store.import_preset(blob, fallback_name)
        self._set_preset_name(name)
        self.apply_params(values)
        self.refresh_options()
        return name

    def export_preset_to_file(self) -> None:
        if self.ask_save_path is None:
            return
        path = self.ask_save_path(self.store.export_filename(self.preset_name.strip() or "preset"))
        if path:
            self.export_preset(Path(path))

    def import_preset_from_file(self) -> None:
        if self.ask_open_path is None:
            return
        path = self.ask_open_path()
        if not path:
            return
        path = Path(path)
        try:
            blob = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PresetImportError(f"Failed to load preset: {exc}") from exc
        self.import_preset(blob, fallback_name=path.stem or "Imported")

    # ---- callbacks
    def _on_load_changed(self, value: Any) -> None:
        if value:
            self._user_action(self.select_preset, str(value))

    def _on_name_edited(self, text: str) -> None:
        self.preset_name = text or ""

    def _set_preset_name(self, name: str) -> None:
        self.preset_name = name
        if self.name_control is not None:
            self.toolkit.set_value(self.name_control, name)

    def _user_action(self, action: Callable[..., Any], *args) -> None:
        if not self.built:
            return
        try:
            action(*args)
        except VizsyncError as exc:
            logger.info("preset action refused: {}", exc)
            if self.notify_error is not None:
                self.notify_error("Presets", str(exc))
