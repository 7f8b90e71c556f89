import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .detector import BACKENDS
from .framing import FramingBounds


def load_config(path: str | Path) -> dict:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    with config_path.open("rb") as f:
        return tomllib.load(f)


@dataclass
class CameraConfig:
    index: int = 0
    preview_width: int = 1600
    preview_height: int = 1024
    fps: float = 15.0
    mirror: bool = False


@dataclass
class DisplayConfig:
    width: int = 1920
    height: int = 1080
    show_window: bool = True


@dataclass
class ScannerConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    backend: str = "opencv"
    display: DisplayConfig = field(default_factory=DisplayConfig)
    bounds: FramingBounds = field(default_factory=FramingBounds)

    @classmethod
    def from_dict(cls, data: dict) -> "ScannerConfig":
        cam_cfg = _section(data, "camera")
        det_cfg = _section(data, "detector")
        display_cfg = _section(data, "display")
        vf_cfg = _section(data, "viewfinder")

        camera = CameraConfig(
            index=_get(cam_cfg, "index", 0, int),
            preview_width=_get(cam_cfg, "preview_width", 1600, int),
            preview_height=_get(cam_cfg, "preview_height", 1024, int),
            fps=float(_get(cam_cfg, "fps", 15.0, (int, float))),
            mirror=_get(cam_cfg, "mirror", False, bool),
        )
        display = DisplayConfig(
            width=_get(display_cfg, "width", 1920, int),
            height=_get(display_cfg, "height", 1080, int),
            show_window=_get(display_cfg, "show_window", True, bool),
        )
        defaults = FramingBounds()
        bounds = FramingBounds(
            min_width=_get(vf_cfg, "min_width", defaults.min_width, int),
            min_height=_get(vf_cfg, "min_height", defaults.min_height, int),
            max_width=_get(vf_cfg, "max_width", defaults.max_width, int),
            max_height=_get(vf_cfg, "max_height", defaults.max_height, int),
        )
        if display.width <= 0 or display.height <= 0:
            raise ValueError("display.width and display.height must be positive")
        if bounds.min_width > bounds.max_width or bounds.min_height > bounds.max_height:
            raise ValueError("viewfinder minimum bounds exceed maximum bounds")
        backend = _get(det_cfg, "backend", "opencv", str)
        if backend not in BACKENDS:
            raise ValueError(f"detector.backend must be one of {BACKENDS}, got {backend!r}")
        return cls(
            camera=camera,
            backend=backend,
            display=display,
            bounds=bounds,
        )


def _section(data: dict, name: str) -> dict:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ValueError(f"[{name}] must be a table")
    return value


def _get(section: dict, key: str, default, types):
    value = section.get(key, default)
    # bool is an int subclass; only accept it where a bool is wanted
    if isinstance(value, bool) and types is not bool:
        raise ValueError(f"{key} must not be a boolean")
    if not isinstance(value, types):
        raise ValueError(f"{key} has unexpected type {type(value).__name__}")
    return value
