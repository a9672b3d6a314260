from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from pose_errors.errors.point_distance import add_error, adds_error, mdds_error
from pose_errors.errors.vsd import BOP19_DELTA, vsd_errors_bop19
from pose_errors.geometry.pose import Camera, Pose
from pose_errors.rendering.renderer import DepthRenderer, RenderScene


@dataclass
class Inputs:
    """A single evaluation unit: one annotated object instance in one image."""
    scene_id: int
    img_id: int
    obj_id: int
    points: np.ndarray
    diameter: float
    gt_pose: Pose
    est_pose: Optional[Pose] = None
    # only required for the VSD
    mesh: Any = None
    camera: Optional[Camera] = None
    measurement: Optional[np.ndarray] = None

    def __post_init__(self):
        assert self.diameter > 0, 'diameter must be positive'
        assert isinstance(self.gt_pose, Pose), 'invalid gt pose'
        assert self.est_pose is None or isinstance(self.est_pose, Pose), 'invalid estimated pose'

    @property
    def has_estimate(self) -> bool:
        return self.est_pose is not None

    @property
    def renderable(self) -> bool:
        return self.mesh is not None and self.camera is not None and self.measurement is not None


class MyDict(dict):
    def register(self, fn) -> Callable:
        """Registers a function within dict(fn_name -> fn_ref).
        This is used to evaluate all registered metrics in MetricManager.__call__()"""
        self[fn.__name__] = fn
        return fn


class MetricManager:
    """Evaluates the registered point distance metrics and, given a renderer, the BOP19 VSD."""
    _metrics = MyDict()

    def __init__(self, renderer: Optional[DepthRenderer] = None, delta: float = BOP19_DELTA,
                 metrics=None):
        self.renderer = renderer
        self.delta = delta
        self.metrics = tuple(self._metrics.keys()) + ('vsd',) if metrics is None else tuple(metrics)
        unknown = set(self.metrics) - set(self._metrics.keys()) - {'vsd'}
        assert not unknown, f'unknown metrics {sorted(unknown)}'

    def __call__(self, inputs: Inputs, results: dict) -> None:
        for metric in self.metrics:
            if metric == 'vsd':
                if self.renderer is not None and inputs.renderable:
                    results[metric].append(self.vsd(inputs))
            else:
                results[metric].append(self._metrics[metric](inputs))

    def vsd(self, inputs: Inputs) -> list:
        estimate = RenderScene(inputs.mesh, inputs.est_pose, inputs.camera)
        ground_truth = RenderScene(inputs.mesh, inputs.gt_pose, inputs.camera)
        return vsd_errors_bop19(self.renderer, estimate, ground_truth, inputs.measurement,
                                inputs.diameter, self.delta)

    @staticmethod
    @_metrics.register
    def add(inputs: Inputs) -> float:
        return add_error(inputs.points, inputs.est_pose, inputs.gt_pose)

    @staticmethod
    @_metrics.register
    def adds(inputs: Inputs) -> float:
        return adds_error(inputs.points, inputs.est_pose, inputs.gt_pose)

    @staticmethod
    @_metrics.register
    def mdds(inputs: Inputs) -> float:
        return mdds_error(inputs.points, inputs.est_pose, inputs.gt_pose)
