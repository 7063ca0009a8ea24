from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

# Étiquettes de contexte sur le canal
PANEL_SOURCE = "controls"
HOST_SOURCE = "player"

READY_INTERVAL_MS = 250
FRAME_INTERVAL_MS = 16
MIN_PANEL_SIZE = (100, 100)
PRESET_PRECISION = 6

STORAGE_KEYS = dict(
    fv3_presets="visualizer.fv3.presets",
    fv3_selected_preset="visualizer.fv3.selectedPreset",
    shader_prefix="shaderConfig",
)

PANEL_TITLE = "VISUALIZER"
FOLDER_TITLES = dict(
    switcher="TYPE",
    quality="PERFORMANCE + QUALITY",
    fv3="FREQUENCY VIZ 3 CONTROLS",
    shader="Shader Settings",
)

FV3_VISUALIZER_LABEL = "Frequency Visualization 3"

QUALITY_DEFAULTS = dict(antialias=False, pixelRatio=1.0)

PIXEL_RATIO_OPTIONS = (
    ("0.25", 0.25),
    ("0.5", 0.5),
    ("1", 1.0),
    ("2", 2.0),
)

# Contrôles du filtre spectral (ordre de déclaration, triés à la construction)
FV3_CONTROLS = [
    dict(type="dropdown", key="weightingMode", label="Weighting mode", options=["ae", "fv2"]),
    dict(type="dropdown", key="spatialKernel", label="Smoothing kernel", options=["wide", "narrow"]),
    dict(type="toggle", key="useBinFloor", label="Use per-bin floor"),
    dict(type="dropdown", key="beatBoostEnabled", label="Beat accent enabled", options=[1, 0]),
    dict(type="slider", key="analyserSmoothing", label="Analyser smoothing", min=0.0, max=1.0, step=0.01),
    dict(type="slider", key="kickHz", label="Kick center Hz", min=20, max=200, step=1),
    dict(type="slider", key="kickWidthOct", label="Kick width (oct)", min=0.1, max=2.0, step=0.01),
    dict(type="slider", key="kickBoostDb", label="Kick boost (dB)", min=-12, max=24, step=0.25),
    dict(type="slider", key="subShelfDb", label="Sub shelf (dB)", min=-12, max=24, step=0.25),
    dict(type="slider", key="tiltLo", label="Tilt low mult", min=0.1, max=3.0, step=0.01),
    dict(type="slider", key="tiltHi", label="Tilt high mult", min=0.1, max=2.5, step=0.01),
    dict(type="slider", key="floorAtkLow", label="Floor atk low", min=0.0, max=1.0, step=0.01),
    dict(type="slider", key="floorRelLow", label="Floor rel low", min=0.0, max=1.0, step=0.01),
    dict(type="slider", key="floorAtkHi", label="Floor atk high", min=0.0, max=1.0, step=0.01),
    dict(type="slider", key="floorRelHi", label="Floor rel high", min=0.0, max=1.0, step=0.01),
    dict(type="slider", key="floorStrengthLow", label="Floor strength low", min=0.0, max=1.5, step=0.01),
    dict(type="slider", key="floorStrengthHi", label="Floor strength high", min=0.0, max=1.5, step=0.01),
    dict(type="slider", key="bassFreqHz", label="Bass boost freq (Hz)", min=20, max=140, step=1),
    dict(type="slider", key="bassWidthHz", label="Boost width (Hz)", min=1, max=50, step=1),
    dict(type="slider", key="bassGainDb", label="Boost gain (dB)", min=-6, max=30, step=0.5),
    dict(type="slider", key="hiRolloffDb", label="High rolloff (dB)", min=-24, max=0, step=0.5),
    dict(type="slider", key="beatBoost", label="Beat boost", min=0.0, max=2.0, step=0.05),
    dict(type="slider", key="attack", label="Attack", min=0.01, max=1.0, step=0.01),
    dict(type="slider", key="release", label="Release", min=0.01, max=1.0, step=0.01),
    dict(type="slider", key="noiseFloor", label="Noise floor", min=0.0, max=0.2, step=0.001),
    dict(type="slider", key="peakCurve", label="Peak curve", min=0.5, max=4.0, step=0.05),
    dict(type="slider", key="minDb", label="Min dB", min=-120, max=-10, step=1),
    dict(type="slider", key="maxDb", label="Max dB", min=-60, max=0, step=1),
    dict(type="slider", key="baselinePercentile", label="Baseline percentile", min=0.01, max=0.5, step=0.005),
    dict(type="slider", key="baselineStrength", label="Baseline strength", min=0.0, max=1.0, step=0.01),
    dict(type="slider", key="displayThreshold", label="Display threshold", min=0.0, max=0.05, step=0.0005),
    dict(type="slider", key="targetPeak", label="Target peak", min=0.1, max=1.5, step=0.01),
    dict(type="slider", key="minGain", label="Min gain", min=0.05, max=3.0, step=0.01),
    dict(type="slider", key="maxGain", label="Max gain", min=0.1, max=5.0, step=0.01),
    dict(type="slider", key="agcAttack", label="AGC attack", min=0.0, max=1.0, step=0.01),
    dict(type="slider", key="agcRelease", label="AGC release", min=0.0, max=1.0, step=0.01),
]

FALLBACK_DEFAULT_CONTROLS = dict(
    bassFreqHz=130, bassWidthHz=40, bassGainDb=8, hiRolloffDb=-6,
    attack=0.75, release=0.12, noiseFloor=0.02, peakCurve=1.25, beatBoost=0.65,
    minDb=-80, maxDb=-18,
    baselinePercentile=0.18, baselineStrength=0.48, displayThreshold=0.005,
    targetPeak=0.95, minGain=0.9, maxGain=1.22, agcAttack=0.18, agcRelease=0.07,
)

TOOLTIPS = {
    "visualizer": "Visualizer rendered by the host window.",
    "antialias": "Smooth edges at the cost of GPU time.",
    "pixelRatio": "Rendering resolution multiplier.",
    "loadPreset": "Built-in and saved spectrum filter presets.",
}


def default_home() -> Path:
    override = os.environ.get("VIZSYNC_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".vizsync"


@dataclass
class Settings:
    """Runtime options for the panel and the demo host."""

    storage_path: Path = field(default_factory=lambda: default_home() / "storage.json")
    presets_dir: Optional[Path] = None
    log_level: str = "INFO"
    ready_interval_ms: int = READY_INTERVAL_MS

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls()
        presets = os.environ.get("VIZSYNC_PRESETS_DIR")
        if presets:
            settings.presets_dir = Path(presets).expanduser()
        settings.log_level = os.environ.get("VIZSYNC_LOG_LEVEL", settings.log_level).upper()
        raw_interval = os.environ.get("VIZSYNC_READY_INTERVAL_MS")
        if raw_interval:
            try:
                settings.ready_interval_ms = max(1, int(raw_interval))
            except ValueError:
                logger.warning(
                    "VIZSYNC_READY_INTERVAL_MS={!r} is not an integer, keeping {}",
                    raw_interval, settings.ready_interval_ms,
                )
        return settings
