from yacs.config import CfgNode as CN

from bop_benchmark import config as bop19

_CN = CN()

_CN.EVAL = CN()
# metrics reported by the evaluation, subset of ('add', 'adds', 'mdds', 'vsd')
_CN.EVAL.METRICS = ['add', 'adds', 'mdds', 'vsd']
# visibility tolerance of the VSD [m]
_CN.EVAL.DELTA = bop19.vsd_delta
# correctness thresholds of the recall
_CN.EVAL.PDM_THRESHOLDS = list(bop19.pdm_thresholds)
_CN.EVAL.VSD_THRESHOLDS = list(bop19.vsd_thresholds)

_CN.RENDER = CN()
# clipping planes of the offscreen renderer [m]
_CN.RENDER.ZNEAR = 0.01
_CN.RENDER.ZFAR = 10.0

cfg = _CN


def get_cfg_defaults():
    """Fresh copy of the default configuration, merge experiment files into it."""
    return _CN.clone()
