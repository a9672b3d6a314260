import abc
import os
import threading
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

from pose_errors.exceptions import RendererFailure
from pose_errors.geometry.pose import Camera, Pose

# Used to render the images when the computer does not have a screen, eg, server
os.environ.setdefault('PYOPENGL_PLATFORM', 'egl')

# OpenCV camera (z forward, y down) to OpenGL camera (z backward, y up)
OPENGL = np.array([[1, 0, 0, 0],
                   [0, -1, 0, 0],
                   [0, 0, -1, 0],
                   [0, 0, 0, 1]])


@dataclass(frozen=True)
class RenderScene:
    """A mesh placed at a pose in front of a camera. The pose maps model to camera coordinates."""
    mesh: Any
    pose: Pose
    camera: Camera


class DepthRenderer(abc.ABC):
    """Renders distance images [H, W] in meters, zero where no surface is hit.

    Every call returns a buffer owned by the caller, which is not modified by subsequent calls.
    Renderers that draw several scenes in one pass set num_layers > 1.
    """
    num_layers: int = 1

    @abc.abstractmethod
    def render(self, scene: RenderScene) -> np.ndarray:
        """Distance image [H, W] of the scene."""

    def render_batch(self, scenes: Sequence[RenderScene]) -> np.ndarray:
        """Distance images [H, W, len(scenes)], one layer per scene."""
        return np.stack([np.array(self.render(scene), copy=True) for scene in scenes], axis=-1)


def depth_to_distance(depth: np.ndarray, K: np.ndarray) -> np.ndarray:
    """Converts a depth image (z coordinate) to a distance image (distance to the optical center)."""
    depth = np.asarray(depth, dtype=np.float64)
    K_inv = np.linalg.inv(np.asarray(K, dtype=np.float64))
    H, W = depth.shape
    xs, ys = np.meshgrid(np.arange(W), np.arange(H))
    pixels = np.stack([xs, ys, np.ones_like(xs)], axis=-1).reshape(-1, 3)
    # rays with z = 1
    rays = (pixels @ K_inv.T).reshape(H, W, 3)
    return np.linalg.norm(rays, axis=-1) * depth


class PyrenderDepthRenderer(DepthRenderer):
    """Offscreen depth renderer based on pyrender.

    The OpenGL context holds a single frame buffer, so calls are serialized. Create one renderer per
    worker for parallel evaluation.
    """

    def __init__(self, znear: float = 0.01, zfar: float = 10., smooth: bool = False):
        self.znear = znear
        self.zfar = zfar
        self.smooth = smooth
        self._renderer = None
        self._lock = threading.Lock()

    @classmethod
    def from_cfg(cls, cfg) -> 'PyrenderDepthRenderer':
        """Creates the renderer with the clipping planes of the RENDER config."""
        return cls(znear=cfg.RENDER.ZNEAR, zfar=cfg.RENDER.ZFAR)

    def _get_renderer(self, camera: Camera):
        import pyrender

        if self._renderer is None:
            self._renderer = pyrender.OffscreenRenderer(camera.width, camera.height)
        elif (self._renderer.viewport_width, self._renderer.viewport_height) != (camera.width, camera.height):
            self._renderer.viewport_width = camera.width
            self._renderer.viewport_height = camera.height
        return self._renderer

    def _create_scene(self, scene: RenderScene):
        import pyrender

        pr_scene = pyrender.Scene(bg_color=[0., 0., 0., 0.], ambient_light=[1., 1., 1.])
        pr_scene.add(pyrender.Mesh.from_trimesh(scene.mesh, smooth=self.smooth), pose=scene.pose.matrix)
        camera = scene.camera
        pr_camera = pyrender.IntrinsicsCamera(camera.fx, camera.fy, camera.cx, camera.cy,
                                              znear=self.znear, zfar=self.zfar)
        pr_scene.add(pr_camera, pose=OPENGL)
        return pr_scene

    def render(self, scene: RenderScene) -> np.ndarray:
        import pyrender

        with self._lock:
            try:
                renderer = self._get_renderer(scene.camera)
                depth = renderer.render(self._create_scene(scene), flags=pyrender.RenderFlags.DEPTH_ONLY)
            except Exception as e:
                raise RendererFailure(f'Rendering failed: {e}') from e
            # own the buffer before releasing the context
            depth = np.array(depth, dtype=np.float64, copy=True)
        return depth_to_distance(depth, scene.camera.K)

    def close(self):
        with self._lock:
            if self._renderer is not None:
                self._renderer.delete()
                self._renderer = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
