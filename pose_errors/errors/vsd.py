"""Projection based pose errors.

Visible Surface Discrepancy as defined for the BOP challenge 2019:
https://bop.felk.cvut.cz/challenges/bop-challenge-2019/
"""

from typing import List, Tuple

import numpy as np

from pose_errors.exceptions import DimensionMismatch
from pose_errors.rendering.renderer import DepthRenderer, RenderScene
from pose_errors.utils.metrics import BOP19_THRESHOLDS

# visibility tolerance of the BOP19 VSD [m]
BOP19_DELTA = 15e-3


def vsd_errors_bop19(renderer: DepthRenderer, estimate: RenderScene, ground_truth: RenderScene,
                     measurement: np.ndarray, diameter: float, delta: float = BOP19_DELTA) -> List[float]:
    """VSD errors for the misalignment tolerances tau = 5%, 10%, ..., 50% of the object diameter.

    delta is used as tolerance for the visibility masks. Both scenes are rendered once and the masked
    distance images are shared by all tau.
    """
    taus = [k * diameter for k in BOP19_THRESHOLDS]
    visible_es, visible_gt = visible_distances(renderer, estimate, ground_truth, measurement, delta)
    return [surface_discrepancy(visible_es, visible_gt, tau) for tau in taus]


def vsd_error(renderer: DepthRenderer, estimate: RenderScene, ground_truth: RenderScene,
              measurement: np.ndarray, delta: float, tau: float) -> float:
    """Visible surface discrepancy of the estimated and the ground truth scene.

    delta is used as tolerance for the visibility masks and tau is the misalignment tolerance.
    """
    visible_es, visible_gt = visible_distances(renderer, estimate, ground_truth, measurement, delta)
    return surface_discrepancy(visible_es, visible_gt, tau)


def visible_distances(renderer: DepthRenderer, estimate: RenderScene, ground_truth: RenderScene,
                      measurement: np.ndarray, delta: float) -> Tuple[np.ndarray, np.ndarray]:
    """Renders both scenes and masks the pixels which are occluded in the measurement."""
    es_img, gt_img = draw_distance(renderer, estimate, ground_truth)
    measurement = np.asarray(measurement)
    if measurement.shape != es_img.shape or measurement.shape != gt_img.shape:
        raise DimensionMismatch(
            f'Measurement of shape {measurement.shape} does not match the renders of shape {es_img.shape}')
    return pixel_visible(es_img, measurement, delta), pixel_visible(gt_img, measurement, delta)


def pixel_visible(render, measurement, delta):
    """If the rendered distance is in front of the measurement with a tolerance of delta, it is returned.
    Otherwise, zero is returned. Works elementwise on arrays.
    """
    render = np.asarray(render)
    measurement = np.asarray(measurement)
    # BOP19 convention: pixels without a measured depth are visible
    visible = (measurement <= 0) | (render <= measurement + delta)
    result = np.where(visible, render, np.zeros_like(render))
    return result if result.ndim else result.item()


def render_surface_discrepancy(renderer: DepthRenderer, estimate: RenderScene, ground_truth: RenderScene,
                               tau: float) -> float:
    """Surface discrepancy of the two rendered scenes without visibility masks."""
    es_img, gt_img = draw_distance(renderer, estimate, ground_truth)
    return surface_discrepancy(es_img, gt_img, tau)


def surface_discrepancy(estimate: np.ndarray, ground_truth: np.ndarray, tau: float) -> float:
    """Fraction of the pixels in the union of both surfaces which violate the misalignment tolerance tau.

    For the VSD, the distance images must have been masked. An empty union is a total failure (1).
    """
    estimate = np.asarray(estimate)
    ground_truth = np.asarray(ground_truth)
    if estimate.shape != ground_truth.shape:
        raise DimensionMismatch(f'Image shapes {estimate.shape} and {ground_truth.shape} do not match')
    union_count = np.count_nonzero((estimate > 0) | (ground_truth > 0))
    # early stopping and no division by zero
    if union_count == 0:
        return 1.
    costs = discrepancy_cost(estimate, ground_truth, tau)
    # average of the costs for the union pixels
    return float(np.sum(costs) / union_count)


def discrepancy_cost(dist_a, dist_b, tau):
    """Step function costs of the BOP19 VSD: True adds cost, False does not. Works elementwise on arrays."""
    dist_a = np.asarray(dist_a)
    dist_b = np.asarray(dist_b)
    a_valid = dist_a > 0
    b_valid = dist_b > 0
    # not part of the intersection -> always cost, outside of the union -> never cost
    costs = a_valid ^ b_valid
    # part of the intersection, cost if the misalignment tolerance is violated
    inter = a_valid & b_valid
    costs = costs | (inter & (np.abs(dist_b - dist_a) > tau))
    return costs if costs.ndim else bool(costs)


def draw_distance(renderer: DepthRenderer, estimate: RenderScene,
                  ground_truth: RenderScene) -> Tuple[np.ndarray, np.ndarray]:
    """Distance images of the estimated and the ground truth scene."""
    if renderer.num_layers > 1:
        imgs = renderer.render_batch([estimate, ground_truth])
        es_img = imgs[:, :, 0]
        gt_img = imgs[:, :, 1]
    else:
        # the renderer might overwrite its buffer in the next call -> copy it
        es_img = np.array(renderer.render(estimate), copy=True)
        gt_img = np.asarray(renderer.render(ground_truth))
    return es_img, gt_img
