from pose_errors.errors.vsd import BOP19_DELTA
from pose_errors.utils.metrics import BOP19_THRESHOLDS

# correctness thresholds, fraction of the object diameter for ADD / ADD-S / MDD-S
pdm_thresholds = BOP19_THRESHOLDS

# correctness thresholds of the VSD, misalignment tolerances tau are the same fractions of the diameter
vsd_thresholds = BOP19_THRESHOLDS

# visibility tolerance delta of the VSD [meters]
vsd_delta = BOP19_DELTA
