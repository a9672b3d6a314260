class PoseEvaluationError(Exception):
    """Base class of all errors raised while scoring a single pose estimate."""


class InvalidGeometry(PoseEvaluationError, ValueError):
    """Malformed point input: wrong shape, non 3D points or undefined coordinates."""


class EmptyPointSet(InvalidGeometry):
    """A point set without any point, so mean / max distances are undefined."""


class DimensionMismatch(PoseEvaluationError, ValueError):
    """Shapes of poses, point sets or images do not agree."""


class InvalidPose(PoseEvaluationError, ValueError):
    """The rotation is not a proper rotation (orthonormal with determinant +1)."""


class RendererFailure(PoseEvaluationError, RuntimeError):
    """Raised by renderer adapters, the original backend error is chained."""


class EmptySampleSet(PoseEvaluationError, ValueError):
    """Recall requested over zero samples."""
