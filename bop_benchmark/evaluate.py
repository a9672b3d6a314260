import argparse
import json
import logging
import math
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

from bop_benchmark.metrics import Inputs, MetricManager
from bop_benchmark.utils import load_errors
import bop_benchmark.config as config
from config.default import get_cfg_defaults
from pose_errors.exceptions import PoseEvaluationError
from pose_errors.rendering.renderer import DepthRenderer, PyrenderDepthRenderer
from pose_errors.utils.metrics import inf_to_one, pdm_avg_recall, vsd_avg_recall

METRIC_NAMES = {'add': 'ADD', 'adds': 'ADD-S', 'mdds': 'MDD-S', 'vsd': 'VSD'}


def _failed_errors(metric_manager: MetricManager, inputs: Inputs, results: dict) -> None:
    """Scores an instance without a valid estimate: infinite distances, maximal discrepancy."""
    for metric in metric_manager.metrics:
        if metric == 'vsd':
            if metric_manager.renderer is not None and inputs.renderable:
                results[metric].append([inf_to_one(math.inf)] * len(config.vsd_thresholds))
        else:
            results[metric].append(math.inf)


def compute_instance_metrics(units: Iterable[Inputs], renderer: Optional[DepthRenderer] = None,
                             delta: float = config.vsd_delta, metrics=None):
    metric_manager = MetricManager(renderer=renderer, delta=delta, metrics=metrics)

    # failures encode how many instances did not have a valid estimate
    # e.g. the method did not provide an estimate or its errors could not be computed
    failures = 0

    # Results encoded as dict
    # key: metric name; value: list of values (one per instance).
    # e.g. results['adds'] = [0.012, 0.003, 0.005, ...]
    results = defaultdict(list)

    for inputs in units:
        unit_results = defaultdict(list)
        if not inputs.has_estimate:
            failures += 1
            _failed_errors(metric_manager, inputs, unit_results)
        else:
            try:
                metric_manager(inputs, unit_results)
            except PoseEvaluationError as e:
                logging.warning(
                    f'Could not evaluate object {inputs.obj_id} in scene {inputs.scene_id}'
                    f' image {inputs.img_id}: {e}. Counting it as failure.')
                failures += 1
                unit_results = defaultdict(list)
                _failed_errors(metric_manager, inputs, unit_results)

        results['scene_id'].append(inputs.scene_id)
        results['img_id'].append(inputs.img_id)
        results['obj_id'].append(inputs.obj_id)
        results['diameter'].append(inputs.diameter)
        for metric in metric_manager.metrics:
            values = unit_results.get(metric)
            results[metric].append(values[0] if values else None)

    return results, failures


def evaluate_units(units: Iterable[Inputs], cfg, renderer: Optional[DepthRenderer] = None):
    """Computes the errors of the units with the metrics and the VSD tolerance of the EVAL config.

    If the VSD is selected and no renderer is given, an offscreen renderer is created from the
    RENDER config and released afterwards.
    """
    own_renderer = renderer is None and 'vsd' in cfg.EVAL.METRICS
    if own_renderer:
        renderer = PyrenderDepthRenderer.from_cfg(cfg)
    try:
        return compute_instance_metrics(units, renderer=renderer, delta=cfg.EVAL.DELTA, metrics=cfg.EVAL.METRICS)
    finally:
        if own_renderer:
            renderer.close()


def aggregate_results(results: dict, pdm_thresholds=config.pdm_thresholds, vsd_thresholds=config.vsd_thresholds):
    output_metrics = dict()
    num_instances = len(results['obj_id'])
    output_metrics['Instances'] = num_instances
    if num_instances == 0:
        return output_metrics

    diameters = np.asarray(results['diameter'], dtype=np.float64)
    for metric in ('add', 'adds', 'mdds'):
        if metric not in results or all(v is None for v in results[metric]):
            continue
        errors = np.asarray(results[metric], dtype=np.float64)
        name = METRIC_NAMES[metric]
        output_metrics[f'{name} Average Recall'] = pdm_avg_recall(diameters, errors, pdm_thresholds)
        finite = errors[np.isfinite(errors)]
        output_metrics[f'{name} Mean Error [m]'] = float(finite.mean()) if finite.size else math.inf

    vsd_errors = [v for v in results.get('vsd', []) if v is not None]
    if len(vsd_errors):
        vsd_errors = inf_to_one(np.asarray(vsd_errors, dtype=np.float64))
        output_metrics['VSD Average Recall'] = vsd_avg_recall(vsd_errors, vsd_thresholds)
        output_metrics['VSD Mean Error'] = float(vsd_errors.mean())
        output_metrics['VSD Instances'] = len(vsd_errors)
    return output_metrics


def main(args):
    cfg = get_cfg_defaults()
    if args.config is not None:
        cfg.merge_from_file(args.config)
    cfg.freeze()

    try:
        results = load_errors(args.errors_path)
    except FileNotFoundError:
        logging.error(f'Could not find errors file in path {args.errors_path}')
        return
    except json.JSONDecodeError as e:
        logging.error(f'Errors file {args.errors_path} is not valid JSON: {e}')
        return

    # metrics which are not selected in the config are not reported
    for metric in METRIC_NAMES:
        if metric not in cfg.EVAL.METRICS:
            results.pop(metric, None)

    if len(results['obj_id']) == 0:
        logging.error('Errors file does not contain any valid instance')
        return

    failures = sum(1 for v in results.get('adds', results.get('add', [])) if v == math.inf)
    if failures > 0:
        logging.warning(f'{failures} instances do not have a valid estimate')

    output_metrics = aggregate_results(results, cfg.EVAL.PDM_THRESHOLDS, cfg.EVAL.VSD_THRESHOLDS)
    output_json = json.dumps(output_metrics, indent=2)
    print(output_json)


if __name__ == '__main__':
    parser = argparse.ArgumentParser(
        'eval', description='Compute the BOP19 average recall of ADD, ADD-S, MDD-S and VSD errors')
    parser.add_argument('--errors_path', type=Path, required=True,
                        help='Path to the JSON file with the per instance errors')
    parser.add_argument('--config', type=Path, default=None,
                        help='Path to a YAML file overriding the default configuration')
    parser.add_argument('--log', choices=('warning', 'info', 'error'),
                        default='warning', help='Logging level. Default: warning')

    args = parser.parse_args()

    logging.basicConfig(level=args.log.upper())
    main(args)
