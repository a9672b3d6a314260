import numpy as np
import pytest

from pose_errors.errors.vsd import (discrepancy_cost, draw_distance, pixel_visible, render_surface_discrepancy,
                                    surface_discrepancy, vsd_error, vsd_errors_bop19)
from pose_errors.exceptions import DimensionMismatch
from pose_errors.geometry.pose import Camera, Pose
from pose_errors.rendering.renderer import DepthRenderer, RenderScene

CAMERA = Camera(8, 6, 10., 10., 4., 3.)


class PatchRenderer(DepthRenderer):
    """Renders a 2x2 patch at the distance t_z of the pose, shifted by round(100 * t_x) pixels.

    Reuses its buffer between calls like an OpenGL frame buffer.
    """

    def __init__(self):
        self.buffer = np.zeros((CAMERA.height, CAMERA.width))
        self.calls = 0

    def render(self, scene):
        self.calls += 1
        self.buffer[:] = 0
        x = 2 + int(round(100 * scene.pose.t[0]))
        self.buffer[2:4, x:x + 2] = scene.pose.t[2]
        return self.buffer


class BatchPatchRenderer(PatchRenderer):
    num_layers = 2
    batch_calls = 0

    def render_batch(self, scenes):
        self.batch_calls += 1
        return np.stack([super(BatchPatchRenderer, self).render(scene).copy() for scene in scenes], axis=-1)


def scene(x=0., z=1.):
    return RenderScene(None, Pose(np.eye(3), [x, 0., z]), CAMERA)


class TestSurfaceDiscrepancy:
    def test_example(self):
        estimate = np.array([[1.0, 0.0], [0.0, 1.0]])
        ground_truth = np.array([[1.05, 0.0], [0.0, 0.0]])
        # union of 2 pixels: (0, 0) within tolerance, (1, 1) only in the estimate
        assert surface_discrepancy(estimate, ground_truth, 0.1) == 0.5
        # (0, 0) violates the tolerance as well
        assert surface_discrepancy(estimate, ground_truth, 0.01) == 1.

    @pytest.mark.parametrize('tau', (0., 0.01, 1.))
    def test_identical(self, tau):
        img = np.random.uniform(0, 2, (6, 8))
        img[0, 0] = 1.
        assert surface_discrepancy(img, img.copy(), tau) == 0.

    def test_disjoint(self):
        estimate = np.zeros((4, 4))
        ground_truth = np.zeros((4, 4))
        estimate[:2] = 1.
        ground_truth[2:] = 1.
        assert surface_discrepancy(estimate, ground_truth, 10.) == 1.

    def test_empty_union(self):
        zeros = np.zeros((4, 4))
        assert surface_discrepancy(zeros, zeros, 0.1) == 1.

    def test_negative_is_invalid(self):
        estimate = np.array([[-1., 1.]])
        ground_truth = np.array([[0., 1.]])
        assert surface_discrepancy(estimate, ground_truth, 0.1) == 0.

    def test_shape_mismatch(self):
        with pytest.raises(DimensionMismatch):
            surface_discrepancy(np.ones((2, 2)), np.ones((2, 3)), 0.1)

    def test_discrepancy_cost(self):
        assert discrepancy_cost(0., 0., 0.1) is False
        assert discrepancy_cost(1., 0., 0.1) is True
        assert discrepancy_cost(0., 1., 0.1) is True
        assert discrepancy_cost(1., 1.05, 0.1) is False
        assert discrepancy_cost(1., 1.2, 0.1) is True
        costs = discrepancy_cost(np.array([0., 1., 1.]), np.array([0., 0., 1.]), 0.1)
        assert costs.tolist() == [False, True, False]


class TestPixelVisible:
    def test_no_measurement(self):
        # BOP19 convention: no depth reading is visible
        assert pixel_visible(2., 0., 0.015) == 2.
        assert pixel_visible(2., -1., 0.015) == 2.

    def test_in_front(self):
        assert pixel_visible(1., 2., 0.015) == 1.
        assert pixel_visible(1.01, 1., 0.015) == 1.01

    def test_occluded(self):
        assert pixel_visible(1.1, 1., 0.015) == 0.

    def test_array(self):
        render = np.array([[1., 1.1], [1., 0.]])
        measurement = np.array([[0., 1.], [2., 1.]])
        assert np.array_equal(pixel_visible(render, measurement, 0.015), [[1., 0.], [1., 0.]])


class TestDrawDistance:
    def test_single_layer_copies_first_render(self):
        renderer = PatchRenderer()
        es_img, gt_img = draw_distance(renderer, scene(z=1.), scene(x=0.02, z=2.))
        assert renderer.calls == 2
        assert not np.shares_memory(es_img, gt_img)
        assert es_img.max() == 1.
        assert gt_img.max() == 2.
        assert np.count_nonzero(es_img) == 4 and np.count_nonzero(gt_img) == 4

    def test_multi_layer_renders_once(self):
        renderer = BatchPatchRenderer()
        es_img, gt_img = draw_distance(renderer, scene(z=1.), scene(z=2.))
        assert renderer.batch_calls == 1
        assert es_img.shape == (CAMERA.height, CAMERA.width)
        assert es_img.max() == 1. and gt_img.max() == 2.

    def test_default_batch(self):
        renderer = PatchRenderer()
        imgs = renderer.render_batch([scene(z=1.), scene(z=2.)])
        assert imgs.shape == (CAMERA.height, CAMERA.width, 2)
        assert imgs[..., 0].max() == 1. and imgs[..., 1].max() == 2.


class TestVSD:
    def test_identical_poses(self):
        measurement = np.zeros((CAMERA.height, CAMERA.width))
        assert vsd_error(PatchRenderer(), scene(), scene(), measurement, 0.015, 0.01) == 0.

    def test_depth_offset(self):
        measurement = np.zeros((CAMERA.height, CAMERA.width))
        errors = vsd_errors_bop19(PatchRenderer(), scene(z=1.0125), scene(z=1.), measurement, diameter=0.1)
        assert len(errors) == 10
        # |1.0125 - 1| violates tau = 0.005 and 0.01 but not tau >= 0.015
        assert errors[:2] == [1., 1.]
        assert all(e == 0. for e in errors[2:])

    def test_occluded_estimate(self):
        """The estimate is hidden behind the measured surface and does not count as visible."""
        measurement = np.zeros((CAMERA.height, CAMERA.width))
        measurement[2:4, 2:4] = 1.
        estimate = scene(x=0.01, z=2.)
        # the estimate covers columns 3 & 4, column 3 is occluded by the measurement
        assert vsd_error(PatchRenderer(), estimate, scene(z=1.), measurement, 0.015, 0.01) == 1.
        errors = vsd_errors_bop19(PatchRenderer(), estimate, scene(z=1.), measurement, diameter=0.1)
        assert all(e == 1. for e in errors)

    def test_nothing_visible(self):
        measurement = np.full((CAMERA.height, CAMERA.width), 0.5)
        assert vsd_error(PatchRenderer(), scene(z=1.), scene(z=1.), measurement, 0.015, 0.01) == 1.

    def test_render_surface_discrepancy(self):
        assert render_surface_discrepancy(PatchRenderer(), scene(x=0.01), scene(), 0.01) == 2 / 3

    def test_measurement_shape(self):
        with pytest.raises(DimensionMismatch):
            vsd_error(PatchRenderer(), scene(), scene(), np.zeros((2, 2)), 0.015, 0.01)
