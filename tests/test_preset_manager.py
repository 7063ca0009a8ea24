import json

import pytest

from vizsync.control.config import FALLBACK_DEFAULT_CONTROLS
from vizsync.control.preset_manager import PresetStore, load_builtin_presets, round_params
from vizsync.control.storage import LocalStorage
from vizsync.errors import NotFoundError, PresetImportError, ProtectedEntryError, ValidationError


def make_store(storage, builtin=None):
    calls = []

    def loader():
        calls.append(1)
        return builtin or {}

    return PresetStore(storage, loader), calls


def test_builtin_load_runs_once(storage):
    store, calls = make_store(storage, {"A": {"x": 0}})
    store.list()
    store.list()
    store.names()

    assert calls == [1]


def test_loader_failure_leaves_user_presets_only(storage):
    def broken():
        raise OSError("no presets directory")

    storage.set_json("visualizer.fv3.presets", {"B": {"y": 2}})
    store = PresetStore(storage, broken)

    assert store.list() == {"B": {"y": 2}}


def test_save_delete_scenario_with_builtin_and_user(storage):
    store, _ = make_store(storage, {"A": {"x": 0}})
    store.save("B", {"y": 2})

    store.save("A", {"x": 1})
    assert store.list() == {"A": {"x": 1}, "B": {"y": 2}}
    assert list(store.list()) == ["A", "B"]

    with pytest.raises(ProtectedEntryError):
        store.delete("A")
    assert store.list() == {"A": {"x": 0}, "B": {"y": 2}}


def test_builtin_only_delete_is_protected_and_catalog_unchanged(storage):
    store, _ = make_store(storage, {"A": {"x": 0}})
    before = store.list()

    with pytest.raises(ProtectedEntryError):
        store.delete("A")
    assert store.list() == before


def test_delete_unknown_name_is_not_found(storage):
    store, _ = make_store(storage)
    with pytest.raises(NotFoundError):
        store.delete("nope")


def test_blank_name_is_rejected(storage):
    store, _ = make_store(storage)
    with pytest.raises(ValidationError):
        store.save("   ", {"x": 1})
    assert store.list() == {}


def test_save_trims_rounds_persists_and_selects(tmp_path):
    storage = LocalStorage(tmp_path / "s.json")
    store = PresetStore(storage)
    store.save("  Mine  ", {"gain": 0.1 + 0.2, "mode": "ae"})

    reopened = PresetStore(LocalStorage(tmp_path / "s.json"))
    assert reopened.list() == {"Mine": {"gain": 0.3, "mode": "ae"}}
    assert reopened.selected == "Mine"


def test_delete_selected_falls_back_to_first_entry(storage):
    store, _ = make_store(storage, {"A": {"x": 0}})
    store.save("B", {"y": 2})
    assert store.selected == "B"

    store.delete("B")
    assert store.selected == "A"


def test_resolve_selection_falls_back_when_persisted_name_is_gone(storage):
    storage.set_item("visualizer.fv3.selectedPreset", "Ghost")
    store, _ = make_store(storage, {"A": {"x": 0}, "Z": {"x": 9}})

    assert store.resolve_selection() == "A"
    assert storage.get_item("visualizer.fv3.selectedPreset") == "A"

    empty, _ = make_store(LocalStorage(storage.path.with_name("other.json")))
    assert empty.resolve_selection() == ""


def test_export_import_round_trip(storage):
    store, _ = make_store(storage)
    store.save("Warm", {"gain": 1.23456789, "minDb": -80, "useBinFloor": True})
    blob = store.export("Warm")
    data = json.loads(blob)

    assert data["visualizer"] == "Frequency Visualization 3"
    assert data["controls"]["gain"] == 1.234568

    store.delete("Warm")
    name, values = store.import_preset(blob)
    assert name == "Warm"
    assert values == {"gain": 1.234568, "minDb": -80, "useBinFloor": True}
    assert store.selected == "Warm"


def test_import_bare_object_uses_fallback_name(storage):
    store, _ = make_store(storage)
    name, values = store.import_preset('{"gain": 2}', fallback_name="my-file")

    assert (name, values) == ("my-file", {"gain": 2})


def test_import_parse_failure_carries_message(storage):
    store, _ = make_store(storage)
    with pytest.raises(PresetImportError, match="Failed to load preset"):
        store.import_preset("{not json")
    with pytest.raises(PresetImportError):
        store.import_preset("[1, 2]")


def test_export_unknown_and_filename(storage):
    store, _ = make_store(storage)
    with pytest.raises(NotFoundError):
        store.export("missing")
    assert store.export_filename("  Deep Bass!! ") == "fv3-preset-deep-bass.json"
    assert store.export_filename("***") == "fv3-preset-preset.json"


def test_round_params_leaves_non_numbers():
    assert round_params({"a": 0.1234567891, "b": True, "c": "x", "d": 3}) == {
        "a": 0.123457, "b": True, "c": "x", "d": 3,
    }


def test_load_builtin_presets_reads_index(tmp_path):
    (tmp_path / "index.json").write_text(json.dumps(["one.json", "broken.json", "two.json"]), encoding="utf-8")
    (tmp_path / "one.json").write_text(json.dumps({"name": "First", "controls": {"x": 1}}), encoding="utf-8")
    (tmp_path / "broken.json").write_text("{", encoding="utf-8")
    (tmp_path / "two.json").write_text(json.dumps({"y": 2}), encoding="utf-8")

    assert load_builtin_presets(tmp_path) == {"First": {"x": 1}, "two": {"y": 2}}


def test_load_builtin_presets_fallbacks(tmp_path):
    (tmp_path / "default.json").write_text(json.dumps({"controls": {"x": 5}}), encoding="utf-8")
    assert load_builtin_presets(tmp_path) == {"Default": {"x": 5}}

    empty = tmp_path / "empty"
    empty.mkdir()
    assert load_builtin_presets(empty) == {"Default": dict(FALLBACK_DEFAULT_CONTROLS)}


def test_bundled_presets_are_loadable():
    presets = load_builtin_presets()
    assert list(presets)[:2] == ["Default", "Punchy"]
