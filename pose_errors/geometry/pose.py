from dataclasses import dataclass

import numpy as np
from transforms3d.quaternions import mat2quat, quat2mat

from pose_errors.exceptions import DimensionMismatch, InvalidPose

# tolerance for R @ R.T == I and det(R) == 1
ROTATION_ATOL = 1e-5


@dataclass(frozen=True)
class Pose:
    """Rigid transformation X' = R X + t, mapping model coordinates to camera coordinates.

    R is a proper rotation matrix [3, 3], t the translation [3,] in meters.
    """
    R: np.ndarray
    t: np.ndarray

    def __post_init__(self):
        R = np.asarray(self.R, dtype=np.float64)
        t = np.asarray(self.t, dtype=np.float64).reshape(-1)
        if R.shape != (3, 3):
            raise DimensionMismatch(f'Rotation must have shape (3, 3), received {R.shape}')
        if t.shape != (3,):
            raise DimensionMismatch(f'Translation must have 3 elements, received {t.shape[0]}')
        if not np.all(np.isfinite(R)) or not np.all(np.isfinite(t)):
            raise InvalidPose('Pose contains non finite values')
        if not np.allclose(R @ R.T, np.eye(3), atol=ROTATION_ATOL):
            raise InvalidPose('Rotation matrix is not orthonormal')
        if not np.isclose(np.linalg.det(R), 1., atol=ROTATION_ATOL):
            raise InvalidPose('Rotation matrix is a reflection (det = -1)')
        # frozen dataclass, bypass __setattr__ to store the canonical arrays
        object.__setattr__(self, 'R', R)
        object.__setattr__(self, 't', t)

    @classmethod
    def from_quaternion(cls, q, t) -> 'Pose':
        """Creates a pose from a unit quaternion (qw, qx, qy, qz) and a translation vector."""
        q = np.asarray(q, dtype=np.float64).reshape(-1)
        if q.shape != (4,):
            raise DimensionMismatch(f'Quaternion must have 4 elements, received {q.shape[0]}')
        norm = np.linalg.norm(q)
        if np.isclose(norm, 0):
            raise InvalidPose('Quaternion must have non-zero norm')
        return cls(quat2mat(q / norm), t)

    @classmethod
    def from_matrix(cls, T) -> 'Pose':
        """Creates a pose from a homogeneous [4, 4] or [3, 4] transformation matrix."""
        T = np.asarray(T, dtype=np.float64)
        if T.shape not in ((4, 4), (3, 4)):
            raise DimensionMismatch(f'Transformation must have shape (4, 4) or (3, 4), received {T.shape}')
        return cls(T[:3, :3], T[:3, 3])

    @classmethod
    def identity(cls) -> 'Pose':
        return cls(np.eye(3), np.zeros(3))

    @property
    def quaternion(self) -> np.ndarray:
        return mat2quat(self.R)

    @property
    def matrix(self) -> np.ndarray:
        T = np.eye(4)
        T[:3, :3] = self.R
        T[:3, 3] = self.t
        return T


def as_pose(pose) -> Pose:
    """Accepts a Pose, a homogeneous matrix or a (R, t) pair."""
    if isinstance(pose, Pose):
        return pose
    if isinstance(pose, tuple) and len(pose) == 2:
        return Pose(*pose)
    return Pose.from_matrix(pose)


@dataclass(frozen=True)
class Camera:
    """Pinhole camera in OpenCV convention: x right, y down, z forward."""
    width: int
    height: int
    fx: float
    fy: float
    cx: float
    cy: float
    s: float = 0.

    def __post_init__(self):
        assert self.width > 0, 'invalid image width'
        assert self.height > 0, 'invalid image height'
        assert self.fx > 0 and self.fy > 0, 'invalid focal length'

    @property
    def K(self) -> np.ndarray:
        return np.array([[self.fx, self.s, self.cx],
                         [0, self.fy, self.cy],
                         [0, 0, 1]], dtype=np.float64)
