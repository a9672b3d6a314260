"""Point distance metrics.

Reimplementation of the ADD / ADD-S errors of the BOP toolkit
(https://github.com/thodan/bop_toolkit/blob/master/bop_toolkit_lib/pose_error.py)
plus the MDD-S variant.
"""

from typing import Optional

import numpy as np
from scipy import spatial

from pose_errors.exceptions import DimensionMismatch
from pose_errors.geometry.points import normalize_points, transform_points


def add_error(points, estimate, ground_truth, columns: Optional[bool] = None) -> float:
    """Average Distance of Model Points for objects with no indistinguishable views (Hinterstoisser et al. 2012)."""
    return float(np.mean(model_point_distances(points, estimate, ground_truth, columns)))


def adds_error(points, estimate, ground_truth, columns: Optional[bool] = None) -> float:
    """Average Distance of Model Points for objects with indistinguishable views (Hinterstoisser et al. 2012).
    Also known as ADD-S or ADI.
    """
    return float(np.mean(nearest_neighbor_distances(points, estimate, ground_truth, columns)))


def mdds_error(points, estimate, ground_truth, columns: Optional[bool] = None) -> float:
    """Maximum Distance of Model Points for objects with indistinguishable views.

    Adaption of the ADD-S error that is sensitive to high frequency surface deviations and thus a better
    indicator for grasp success. Compared to the Maximum Symmetry-Aware Surface Distance (MSSD) of the
    BOP challenge, the symmetries of the object do not have to be annotated.
    """
    return float(np.max(nearest_neighbor_distances(points, estimate, ground_truth, columns)))


def model_point_distances(points, estimate, ground_truth, columns: Optional[bool] = None) -> np.ndarray:
    """Distance of each ground truth model point to the model point with the same index in the estimate."""
    pts = normalize_points(points, columns)
    es_points = transform_points(pts, estimate, columns=False)
    gt_points = transform_points(pts, ground_truth, columns=False)
    if es_points.shape != gt_points.shape:
        raise DimensionMismatch(f'Cannot pair {len(es_points)} estimated with {len(gt_points)} ground truth points')
    return np.linalg.norm(es_points - gt_points, axis=1)


def nearest_neighbor_distances(points, estimate, ground_truth, columns: Optional[bool] = None) -> np.ndarray:
    """Distance of each ground truth model point to its nearest neighbor among the estimated model points."""
    pts = normalize_points(points, columns)
    es_points = transform_points(pts, estimate, columns=False)
    gt_points = transform_points(pts, ground_truth, columns=False)

    nn_index = spatial.cKDTree(es_points)
    nn_dists, _ = nn_index.query(gt_points, k=1)
    return nn_dists
