from typing import Optional

import numpy as np

from pose_errors.exceptions import EmptyPointSet, InvalidGeometry
from pose_errors.geometry.pose import Pose, as_pose


def normalize_points(points, columns: Optional[bool] = None) -> np.ndarray:
    """Converts the supported point formats to a float64 array of shape [N, 3].

    Supported formats:
        - sequence of 3-vectors (lists, tuples or arrays), one point per element
        - 2D array with one point per column [3, N], including square [3, 3] arrays.
          Arrays [N, 3] with N != 3 are read with one point per row.
        - meshes / point clouds exposing their vertex buffer as `vertices` (e.g. trimesh.Trimesh)
    Set columns=True or columns=False to force the one-point-per-column or one-point-per-row
    interpretation of a matrix.
    """
    if hasattr(points, 'vertices'):
        # vertex buffers store one vertex per row
        points = points.vertices
        columns = False if columns is None else columns

    if isinstance(points, np.ndarray):
        pts = points
    else:
        points = list(points)
        if len(points) == 0:
            raise EmptyPointSet('Point set does not contain any point')
        shapes = {np.shape(p) for p in points}
        if shapes != {(3,)}:
            raise InvalidGeometry(f'Expected 3D points, received points of shapes {sorted(shapes)}')
        pts = np.asarray(points, dtype=np.float64)
        columns = False

    if pts.ndim != 2:
        raise InvalidGeometry(f'Expected a 2D array of points, received shape {pts.shape}')
    if pts.size == 0:
        raise EmptyPointSet('Point set does not contain any point')

    if columns is None:
        if pts.shape[0] != 3 and pts.shape[1] != 3:
            raise InvalidGeometry(f'Expected points of shape [3, N] or [N, 3], received shape {pts.shape}')
        columns = pts.shape[0] == 3
    if columns:
        if pts.shape[0] != 3:
            raise InvalidGeometry(f'Expected 3 rows for one point per column, received shape {pts.shape}')
        pts = pts.T
    elif pts.shape[1] != 3:
        raise InvalidGeometry(f'Expected 3 columns for one point per row, received shape {pts.shape}')

    pts = np.ascontiguousarray(pts, dtype=np.float64)
    if np.isnan(pts).any():
        raise InvalidGeometry('Point set contains NaN coordinates')
    return pts


def transform_points(points, pose: Pose, columns: Optional[bool] = None) -> np.ndarray:
    """Applies the rotation and then the translation of the pose to each point. Returns [N, 3]."""
    pts = normalize_points(points, columns)
    pose = as_pose(pose)
    return pts @ pose.R.T + pose.t


def diameter(points, columns: Optional[bool] = None) -> float:
    """Maximum distance of two points in the model, which is the diameter of the object.

    Exhaustive search over all unordered pairs, O(N^2) distance evaluations.
    """
    pts = normalize_points(points, columns)
    # zero initialization from an actual distance
    diam = np.linalg.norm(pts[0] - pts[0])
    for idx in range(len(pts) - 1):
        # previous and current point do not need to be compared again
        dists = np.linalg.norm(pts[idx + 1:] - pts[idx], axis=1)
        diam = max(diam, dists.max())
    return float(diam)
