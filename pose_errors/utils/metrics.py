import numpy as np

from pose_errors.exceptions import DimensionMismatch, EmptySampleSet

# 5%-50% in 5% steps, listed explicitly to avoid accumulating floating point steps
BOP19_THRESHOLDS = (0.05, 0.10, 0.15, 0.20, 0.25, 0.30, 0.35, 0.40, 0.45, 0.50)


def pdm_correct(diameters, distances, thresholds=BOP19_THRESHOLDS) -> np.ndarray:
    """Correctness table [N, T] of point distance metrics: distance < threshold * diameter.

    diameters is either a scalar or one diameter per sample.
    """
    distances = _as_samples(distances)
    diameters = np.asarray(diameters, dtype=np.float64)
    try:
        diameters = np.broadcast_to(diameters, distances.shape)
    except ValueError as e:
        raise DimensionMismatch(f'Cannot pair {diameters.size} diameters with {distances.size} distances') from e
    thresholds = np.asarray(thresholds, dtype=np.float64)
    return distances[:, None] < thresholds[None, :] * diameters[:, None]


def pdm_avg_recall(diameters, distances, thresholds=BOP19_THRESHOLDS) -> float:
    """The fraction of annotated object instances, for which a correct pose is estimated, is referred to as recall.
    Poses are considered correct for distance < threshold * diameter.
    """
    return float(pdm_correct(diameters, distances, thresholds).mean())


def vsd_correct(discrepancies, thresholds=BOP19_THRESHOLDS) -> np.ndarray:
    """Correctness table [N, T] of the VSD: discrepancy < threshold.

    Discrepancies of shape [N, n_tau] are flattened, each (instance, tau) pair is a sample.
    """
    return avg_recall_table(np.ravel(discrepancies), thresholds)


def vsd_avg_recall(discrepancies, thresholds=BOP19_THRESHOLDS) -> float:
    """The fraction of annotated object instances, for which a correct pose is estimated, is referred to as recall.
    Poses are considered correct for discrepancy < threshold.
    """
    return float(vsd_correct(discrepancies, thresholds).mean())


def avg_recall_table(samples, thresholds=BOP19_THRESHOLDS) -> np.ndarray:
    samples = _as_samples(samples)
    thresholds = np.asarray(thresholds, dtype=np.float64)
    return samples[:, None] < thresholds[None, :]


def avg_recall(samples, thresholds=BOP19_THRESHOLDS) -> float:
    """Flat mean of the correctness table sample < threshold."""
    return float(avg_recall_table(samples, thresholds).mean())


def recall_curve(correct: np.ndarray) -> np.ndarray:
    """Recall per threshold of a correctness table [N, T]."""
    correct = np.asarray(correct)
    if correct.shape[0] == 0:
        raise EmptySampleSet('Recall of zero samples is undefined')
    return dropsum(correct, axis=0) / correct.shape[0]


def _as_samples(samples) -> np.ndarray:
    samples = np.asarray(samples, dtype=np.float64).reshape(-1)
    if samples.size == 0:
        raise EmptySampleSet('Recall of zero samples is undefined')
    return samples


def inf_to_one(x):
    """If x is infinity one is returned, x otherwise. Works elementwise on arrays."""
    if np.isscalar(x):
        return 1. if np.isinf(x) else x
    x = np.asarray(x, dtype=np.float64)
    return np.where(np.isinf(x), 1., x)


def dropsum(x, axis):
    """Combines sum and dropping the summed axis."""
    return np.squeeze(np.sum(x, axis=axis, keepdims=True), axis=axis)
