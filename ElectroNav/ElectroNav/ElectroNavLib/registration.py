"""Grid-to-MRI rigid registration.

A ``RigidTransform`` maps recording-grid (chamber) coordinates into the
scanner space of the loaded MRI. It is loaded once per session from a
calibration file and replaced wholesale on recalibration; instances are
immutable.

Example::

    xform = RigidTransform.load("/data/M01/M01_ElectroNav.xform")
    world = xform.apply([[2.0, 2.0, 2.0]])
"""

from __future__ import annotations

import os

import numpy as np

from ElectroNavLib.errors import InvalidArgument

# Calibration files are written with limited precision
ORTHONORMAL_TOLERANCE = 1e-3


def _validated_matrix(matrix) -> np.ndarray:
    try:
        m = np.array(matrix, dtype=float)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"transform is not numeric: {exc}") from exc
    if m.shape != (4, 4):
        raise InvalidArgument(f"transform must be 4x4, got shape {m.shape}")
    if not np.all(np.isfinite(m)):
        raise InvalidArgument("transform contains non-finite values")
    if not np.allclose(m[3], [0.0, 0.0, 0.0, 1.0], atol=1e-9):
        raise InvalidArgument("transform bottom row must be [0, 0, 0, 1]")
    rotation = m[:3, :3]
    if not np.allclose(rotation @ rotation.T, np.eye(3), atol=ORTHONORMAL_TOLERANCE):
        raise InvalidArgument("transform rotation block is not orthonormal")
    m.setflags(write=False)
    return m


def rotation_matrix(axis: str, degrees: float) -> np.ndarray:
    """Return the 3x3 right-handed rotation about ``"x"``, ``"y"`` or ``"z"``."""
    t = np.deg2rad(degrees)
    c, s = np.cos(t), np.sin(t)
    if axis == "x":
        return np.array([[1, 0, 0], [0, c, -s], [0, s, c]])
    if axis == "y":
        return np.array([[c, 0, s], [0, 1, 0], [-s, 0, c]])
    if axis == "z":
        return np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]])
    raise InvalidArgument(f"unknown rotation axis: {axis!r}")


class RigidTransform:
    """Immutable 4x4 homogeneous rotation + translation.

    The bottom row is always ``[0, 0, 0, 1]`` and the rotation block is
    orthonormal, so the inverse always exists.

    Example::

        xform = RigidTransform.from_translation_rotation((5, 0, -3), (17, 0, 0))
        back = xform.inverse().apply(xform.apply(points))
    """

    __slots__ = ("_matrix",)

    def __init__(self, matrix) -> None:
        self._matrix = _validated_matrix(matrix)

    @classmethod
    def identity(cls) -> RigidTransform:
        return cls(np.eye(4))

    @classmethod
    def from_translation_rotation(
        cls,
        translation=(0.0, 0.0, 0.0),
        rotation_deg=(0.0, 0.0, 0.0),
    ) -> RigidTransform:
        """Build ``T @ Rx @ Ry @ Rz`` from a translation and XYZ angles.

        Args:
            translation: (x, y, z) offset of the grid origin in mm.
            rotation_deg: Rotations about x, y and z in degrees.
        """
        m = np.eye(4)
        m[:3, :3] = (
            rotation_matrix("x", rotation_deg[0])
            @ rotation_matrix("y", rotation_deg[1])
            @ rotation_matrix("z", rotation_deg[2])
        )
        m[:3, 3] = np.asarray(translation, dtype=float)
        return cls(m)

    @property
    def matrix(self) -> np.ndarray:
        """Read-only view of the 4x4 matrix."""
        return self._matrix

    @property
    def rotation(self) -> np.ndarray:
        return self._matrix[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self._matrix[:3, 3]

    @property
    def chamber_origin(self) -> np.ndarray:
        """Scanner-space position of the grid origin."""
        return self.apply([0.0, 0.0, 0.0])

    def inverse(self) -> RigidTransform:
        inv = np.eye(4)
        inv[:3, :3] = self.rotation.T
        inv[:3, 3] = -self.rotation.T @ self.translation
        return RigidTransform(inv)

    def compose(self, other: RigidTransform) -> RigidTransform:
        """Return the transform that applies ``other`` first, then ``self``."""
        return RigidTransform(self._matrix @ other.matrix)

    def apply(self, points, layout: str | None = None) -> np.ndarray:
        """Map points from grid space into scanner space.

        Points may be given as rows (N x 3 / N x 4) or as columns
        (3 x N / 4 x N). The layout is inferred from which axis has
        length 3; when neither does, a 4-row input is read as homogeneous
        columns and a 4-column input as homogeneous rows. A square 3 x 3
        input is ambiguous and is read as rows unless ``layout`` says
        otherwise. The result has the same layout as the input, with
        3-D (non-homogeneous) points.

        Args:
            points: A single 3-/4-vector or a 2-D point array.
            layout: ``"rows"`` or ``"columns"`` to skip inference.

        Returns:
            Transformed 3-D points, shape (3,), (N, 3) or (3, N).

        Example::

            xform.apply([2.0, 2.0, 2.0])           # -> array([7., 2., -1.])
            xform.apply(np.zeros((10, 3)))         # rows in, rows out
        """
        pts = np.asarray(points, dtype=float)
        if pts.ndim == 1:
            if pts.size not in (3, 4):
                raise InvalidArgument(f"cannot transform a vector of length {pts.size}")
            return self._transform_columns(pts[:3, None])[:, 0]
        if pts.ndim != 2:
            raise InvalidArgument(f"points must be 1-D or 2-D, got {pts.ndim}-D")

        if layout is None:
            layout = _infer_layout(pts.shape)
        if layout == "rows":
            if pts.shape[1] not in (3, 4):
                raise InvalidArgument(f"row points must have 3 or 4 columns, got {pts.shape}")
            return self._transform_columns(pts[:, :3].T).T
        if layout == "columns":
            if pts.shape[0] not in (3, 4):
                raise InvalidArgument(f"column points must have 3 or 4 rows, got {pts.shape}")
            return self._transform_columns(pts[:3, :])
        raise InvalidArgument(f"unknown point layout: {layout!r}")

    def apply_xyz(self, x, y, z) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Transform separate coordinate arrays (e.g. a surface mesh grid)."""
        x, y, z = (np.asarray(a, dtype=float) for a in (x, y, z))
        if not (x.shape == y.shape == z.shape):
            raise InvalidArgument("x, y and z must have the same shape")
        cols = np.vstack([x.ravel(), y.ravel(), z.ravel()])
        out = self._transform_columns(cols)
        return (
            out[0].reshape(x.shape),
            out[1].reshape(x.shape),
            out[2].reshape(x.shape),
        )

    def _transform_columns(self, cols: np.ndarray) -> np.ndarray:
        return self.rotation @ cols + self.translation[:, None]

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: str) -> RigidTransform:
        """Load a transform from a ``.mat`` file or a 4x4 text table.

        ``.mat`` files must hold the matrix in a variable named ``T``.
        Any other extension (``.xform``, ``.txt``) is parsed as four
        whitespace-separated rows of four numbers.

        Raises:
            InvalidArgument: if the file content is not a valid rigid transform.
        """
        if os.path.splitext(path)[1].lower() == ".mat":
            from scipy.io import loadmat

            try:
                contents = loadmat(path)
            except (OSError, ValueError) as exc:
                raise InvalidArgument(f"cannot read transform file {path}: {exc}") from exc
            if "T" not in contents:
                raise InvalidArgument(f"{path} has no variable 'T'")
            matrix = contents["T"]
        else:
            try:
                matrix = np.loadtxt(path, dtype=float, ndmin=2)
            except ValueError as exc:
                raise InvalidArgument(f"malformed transform table in {path}: {exc}") from exc
        return cls(matrix)

    def save(self, path: str) -> None:
        """Write the transform using the encoding implied by the file extension."""
        if os.path.splitext(path)[1].lower() == ".mat":
            from scipy.io import savemat

            savemat(path, {"T": np.array(self._matrix)})
        else:
            np.savetxt(path, self._matrix, fmt="%.6f")

    def __eq__(self, other) -> bool:
        if not isinstance(other, RigidTransform):
            return NotImplemented
        return bool(np.array_equal(self._matrix, other.matrix))

    def __hash__(self) -> int:
        return hash(self._matrix.tobytes())

    def __repr__(self) -> str:
        return f"RigidTransform({self._matrix.tolist()!r})"


def _infer_layout(shape: tuple[int, int]) -> str:
    rows, cols = shape
    if cols == 3:
        return "rows"
    if rows == 3:
        return "columns"
    if rows == 4:
        return "columns"
    if cols == 4:
        return "rows"
    raise InvalidArgument(f"cannot infer point layout from shape {shape}")
