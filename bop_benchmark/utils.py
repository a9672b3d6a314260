import json
import logging
import math
from collections import defaultdict
from pathlib import Path

RECORD_KEYS = ('scene_id', 'img_id', 'obj_id', 'diameter', 'add', 'adds', 'mdds', 'vsd')


def _to_json_value(value):
    """Non finite errors are not valid JSON, they are stored as null."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [_to_json_value(v) for v in value]
    value = float(value)
    return value if math.isfinite(value) else None


def _from_json_value(value):
    if value is None:
        return math.inf
    if isinstance(value, list):
        return [_from_json_value(v) for v in value]
    return float(value)


def save_errors(results: dict, file_path: Path) -> None:
    """Saves the per instance errors as a JSON list of records, one record per annotated instance."""
    num_instances = len(results['obj_id'])
    records = []
    for i in range(num_instances):
        record = dict()
        for key in RECORD_KEYS:
            if key not in results:
                continue
            value = results[key][i]
            if key in ('scene_id', 'img_id', 'obj_id'):
                record[key] = int(value)
            elif key == 'vsd' and value is None:
                # VSD not evaluated for this instance
                continue
            else:
                record[key] = _to_json_value(value)
        records.append(record)

    with Path(file_path).open('w', encoding='utf-8') as f:
        json.dump(records, f, indent=2)
    logging.info(f'Saved errors of {num_instances} instances to {file_path}')


def load_errors(file_path: Path) -> dict:
    """Loads the errors saved by save_errors. Missing / null errors are loaded as infinity."""
    with Path(file_path).open('r', encoding='utf-8') as f:
        records = json.load(f)

    results = defaultdict(list)
    for line_number, record in enumerate(records):
        if not all(key in record for key in ('scene_id', 'img_id', 'obj_id', 'diameter')):
            logging.warning(
                f'Invalid record {line_number} in file {file_path}.'
                f' Expected at least scene_id, img_id, obj_id and diameter. Ignoring record.')
            continue
        results['scene_id'].append(int(record['scene_id']))
        results['img_id'].append(int(record['img_id']))
        results['obj_id'].append(int(record['obj_id']))
        results['diameter'].append(float(record['diameter']))
        for key in ('add', 'adds', 'mdds'):
            results[key].append(_from_json_value(record.get(key)))
        results['vsd'].append(_from_json_value(record['vsd']) if 'vsd' in record else None)
    return results
