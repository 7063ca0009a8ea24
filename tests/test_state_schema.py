import math

import pytest

from vizsync.control.schema import (
    CapabilityDescriptor,
    ParamKind,
    ParamSpec,
    parametric_descriptor,
    shader_descriptor,
)
from vizsync.control.state import QualityConfig, SyncState


def test_quality_merge_ignores_unusable_values():
    q = QualityConfig()
    assert q.merge(antialias="yes", pixel_ratio=math.nan) is False
    assert q.merge(antialias=None, pixel_ratio=True) is False
    assert (q.antialias, q.pixel_ratio) == (False, 1.0)

    assert q.merge(antialias=True, pixel_ratio=0.5) is True
    assert q.to_payload() == {"antialias": True, "pixelRatio": 0.5}


def test_sync_state_feature_mirror():
    state = SyncState()
    state.apply_init(["A", "B"], "B")
    state.replace_feature("fv3", {"minDb": -80})
    state.set_param("fv3", "maxDb", -18)
    state.merge_feature("fv3", {"minDb": -70})

    assert state.visualizer_list == ["A", "B"]
    assert state.active_visualizer == "B"
    assert state.feature("fv3") == {"minDb": -70, "maxDb": -18}

    copy = state.feature("fv3")
    copy["minDb"] = 0
    assert state.feature("fv3")["minDb"] == -70

    state.clear_feature("fv3")
    assert state.feature("fv3") == {}


def test_coercion_rules():
    slider = ParamSpec("gain", "Gain", ParamKind.SLIDER, 0, 2, 0.01)
    stepped = ParamSpec("hz", "Hz", ParamKind.SLIDER, 20, 200, 1)
    toggle = ParamSpec("on", "On", ParamKind.TOGGLE)
    dropdown = ParamSpec("mode", "Mode", ParamKind.DROPDOWN, options=(("1", 1), ("0", 0)))

    assert slider.coerce("0.25") == 0.25
    assert stepped.coerce("130") == 130 and isinstance(stepped.coerce(130.0), int)
    assert toggle.coerce("true") is True
    assert toggle.coerce(0) is False
    assert dropdown.coerce("1") == 1 and isinstance(dropdown.coerce("1"), int)
    with pytest.raises(ValueError):
        slider.coerce("inf")
    with pytest.raises(ValueError):
        dropdown.coerce("2")


def test_params_sorted_by_label_case_insensitive_and_stable():
    params = (
        ParamSpec("b", "beta", ParamKind.TOGGLE),
        ParamSpec("a2", "Alpha", ParamKind.TOGGLE),
        ParamSpec("g", "Gamma", ParamKind.TOGGLE),
        ParamSpec("a1", "alpha", ParamKind.TOGGLE),
    )
    desc = CapabilityDescriptor("x", "X", params)

    assert [p.key for p in desc.ordered_params()] == ["a2", "a1", "b", "g"]


def test_parametric_descriptor_covers_every_control():
    desc = parametric_descriptor()
    labels = [p.label for p in desc.ordered_params()]

    assert len(desc.params) == 36
    assert labels == sorted(labels, key=str.casefold)
    assert desc.get("bassFreqHz").default == 130


def test_shader_descriptor_keeps_declared_order_and_skips_unknown():
    desc = shader_descriptor({
        "name": "Plasma",
        "controls": [
            {"type": "slider", "name": "Speed", "uniform": "uSpeed", "default": 1.0, "min": 0, "max": 4},
            {"type": "color", "name": "Tint", "uniform": "uTint"},
            {"type": "select", "name": "Palette", "uniform": "uPalette", "default": 0,
             "options": [{"label": "Ember", "value": 0}, {"label": "Ocean", "value": 1}]},
        ],
    })

    assert desc.area == "Plasma"
    assert [p.key for p in desc.ordered_params()] == ["uSpeed", "uPalette"]
    assert desc.get("uPalette").options == (("Ember", 0), ("Ocean", 1))
    assert shader_descriptor({"name": "Empty", "controls": []}) is None
    assert shader_descriptor(None) is None
