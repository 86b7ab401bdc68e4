from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping

import yaml

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "paths": {
        "input_dir": "images",
        "output_dir": "outputs",
    },
    "detection": {
        # Object detector model (COCO labels), e.g. EfficientDet-Lite0 .tflite
        "model_path": "models/efficientdet_lite0.tflite",
        "label": "person",
        "score_threshold": 0.5,
        "max_results": 5,
    },
    "segmentation": {
        # 0 = general (256x256), 1 = landscape (144x256)
        "model_selection": 0,
        # Mask probability above which a pixel is foreground
        "mask_threshold": 0.5,
    },
    "mediapipe": {
        "static_image_mode": True,
        # Needed for the iris ring (landmarks 468-477)
        "refine_landmarks": True,
        "max_faces": 1,
        "min_detection_confidence": 0.5,
    },
    "gradient": {
        # Max distance (px) between a landmark and the body boundary to snap
        "snap_threshold": 15.0,
        "steps": 10,
    },
    "iris": {
        "angular_steps": 36,
        "max_radius_factor": 1.8,
        "min_radius_factor": 0.4,
    },
    "eyebags": {
        "padding": 8.0,
        "min_width": 12,
        "smooth_radius": 3,
        "max_gap": 6,
    },
    "hair": {
        # Extra width on each side of the face oval, as a fraction of its width
        "head_band": 0.5,
    },
    "runtime": {
        "workers": 2,  # 0 => stages run inline on the calling thread
        "stage_timeout": None,  # seconds; None waits until every stage settles
        "max_files": None,
        "log_level": "INFO",
    },
}


def _deep_merge(base: MutableMapping[str, Any], override: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for k, v in override.items():
        if k in base and isinstance(base[k], MutableMapping) and isinstance(v, Mapping):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_yaml(path: str | Path | None) -> Dict[str, Any]:
    if not path:
        return {}
    p = Path(path)
    if not p.exists():
        logger.warning("YAML config not found: %s", p)
        return {}
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("Top-level of YAML must be a mapping/dict")
    return data


def merge_config(yaml_cfg: Mapping[str, Any] | None = None, cli_overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    cfg: Dict[str, Any] = {}
    _deep_merge(cfg, copy.deepcopy(DEFAULTS))
    if yaml_cfg:
        _deep_merge(cfg, dict(yaml_cfg))
    if cli_overrides:
        _deep_merge(cfg, dict(cli_overrides))
    return cfg


def load_and_merge(yaml_path: str | Path | None, cli_overrides: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    yaml_cfg = load_yaml(yaml_path)
    return merge_config(yaml_cfg, cli_overrides)


def section(cfg: Mapping[str, Any] | None, name: str) -> Dict[str, Any]:
    """Return `cfg[name]` layered over the defaults for that section."""
    out = copy.deepcopy(DEFAULTS.get(name, {}))
    if cfg and isinstance(cfg.get(name), Mapping):
        _deep_merge(out, cfg[name])
    return out
