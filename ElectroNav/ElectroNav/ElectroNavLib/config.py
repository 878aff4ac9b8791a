"""Per-host default parameters.

Each workstation keeps a JSON parameter file
``<root>/Params/ParamsFile_<hostname>.json`` with the paths and display
defaults used to start a session.

Example::

    defaults = load_defaults(default_params_path("/data/ElectroNav"), subject_id="M01")
"""

from __future__ import annotations

import dataclasses
import json
import os
import socket
from dataclasses import dataclass, field

from ElectroNavLib.electrode_model import QUALITY_COLORMAP
from ElectroNavLib.errors import InvalidArgument


@dataclass
class Defaults:
    subject_id: str = ""
    grid_id: str = "19mm cylindrical"
    transform_path: str = ""  # .mat or .xform
    mri_path: str = ""
    atlas_path: str = ""
    history_path: str = ""
    vtk_dir: str = ""
    electrode_id: str = "PLX24_A"
    guide_length: float = 27.0  # mm
    quality_colormap: list = field(default_factory=lambda: [list(c) for c in QUALITY_COLORMAP])
    layer_opacity: list = field(default_factory=lambda: [1.0, 0.5, 0.5, 1.0])
    layer_colors: list = field(
        default_factory=lambda: [
            [0.5, 0.5, 0.5],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0],
        ]
    )
    smoothing_kernel_size: int = 5
    sigma_max: float = 5.0
    zoom_level: float = 15.0  # mm either side of the selected contact
    atlas_hemisphere_offset: int | None = 1000  # None disables label folding


def default_params_path(root: str, hostname: str | None = None) -> str:
    """Path of this machine's parameter file under ``root``."""
    if hostname is None:
        hostname = socket.gethostname().split(".")[0]
    return os.path.join(root, "Params", f"ParamsFile_{hostname}.json")


def load_defaults(path: str, subject_id: str | None = None) -> Defaults:
    """Read a parameter file; a missing file gives the built-in defaults.

    Raises:
        InvalidArgument: if the file is not a JSON object or has unknown keys.
    """
    values = {}
    if os.path.exists(path):
        with open(path) as f:
            try:
                values = json.load(f)
            except json.JSONDecodeError as exc:
                raise InvalidArgument(f"malformed parameter file {path}: {exc}") from exc
        if not isinstance(values, dict):
            raise InvalidArgument(f"parameter file {path} must hold a JSON object")
    else:
        print(f"[ElectroNav] No parameter file at {path}; using defaults")

    known = {f.name for f in dataclasses.fields(Defaults)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise InvalidArgument(f"unknown keys in {path}: {', '.join(unknown)}")

    defaults = Defaults(**values)
    if subject_id is not None:
        defaults.subject_id = subject_id
    return defaults


def save_defaults(defaults: Defaults, path: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w") as f:
        json.dump(dataclasses.asdict(defaults), f, indent=2)
