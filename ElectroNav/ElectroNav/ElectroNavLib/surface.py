"""Brain surface meshes.

Meshes are read with VTK (imported lazily; install the ``surface`` extra)
and only ever transformed into new meshes, never edited in place.

Example::

    brain = load_surface("/data/atlas/NeuroMaps_surface.vtk")
    in_grid_space = transform_surface(brain, xform.inverse())
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import numpy as np

from ElectroNavLib.errors import InvalidArgument
from ElectroNavLib.registration import RigidTransform


@dataclass(frozen=True)
class Surface:
    vertices: np.ndarray  # (N, 3) mm
    faces: np.ndarray  # (M, 3) vertex indices, 0-based

    def bounds(self) -> np.ndarray:
        """(3, 2) min/max per axis."""
        return np.column_stack([self.vertices.min(axis=0), self.vertices.max(axis=0)])


def load_surface(path: str) -> Surface:
    """Read a legacy-format .vtk polydata file of triangles."""
    if not os.path.exists(path):
        raise InvalidArgument(f"surface file not found: {path}")
    import vtk

    reader = vtk.vtkPolyDataReader()
    reader.SetFileName(path)
    reader.Update()
    polydata = reader.GetOutput()
    if polydata is None or polydata.GetNumberOfPoints() == 0:
        raise InvalidArgument(f"no surface in {path}")

    triangulate = vtk.vtkTriangleFilter()
    triangulate.SetInputData(polydata)
    triangulate.Update()
    polydata = triangulate.GetOutput()

    vertices = np.array(
        [polydata.GetPoint(i) for i in range(polydata.GetNumberOfPoints())], dtype=float
    )
    faces = []
    for c in range(polydata.GetNumberOfCells()):
        ids = polydata.GetCell(c).GetPointIds()
        if ids.GetNumberOfIds() == 3:
            faces.append([ids.GetId(k) for k in range(3)])
    faces = np.array(faces, dtype=int).reshape(-1, 3)
    return Surface(vertices=vertices, faces=faces)


def transform_surface(surface: Surface, transform: RigidTransform) -> Surface:
    return Surface(vertices=transform.apply(surface.vertices, layout="rows"), faces=surface.faces.copy())
