"""
JSON persistence for PropertyRecords.

Keys are camelCase, absent optionals are omitted (never null), datetimes are
ISO-8601 strings and byte counts stay integers.
"""
import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Iterable, Union

from .models import MediaMetadata, PropertyRecord, Timestamp, TimestampSet

RecordOrRecords = Union[PropertyRecord, Iterable[PropertyRecord]]


# keys whose casing does not follow the generic rule
KEY_OVERRIDES = {
    'resource_url': 'resourceURL',
}


def _camel(name: str) -> str:
    if name in KEY_OVERRIDES:
        return KEY_OVERRIDES[name]
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


def _timestamp_to_dict(ts: Timestamp) -> Dict[str, Any]:
    return {
        'instant': ts.instant.isoformat(),
        'ms': ts.ms,
        'local': ts.local,
        'relative': ts.relative,
    }


def _timestamps_to_dict(ts: TimestampSet) -> Dict[str, Any]:
    return {f.name: _timestamp_to_dict(getattr(ts, f.name)) for f in fields(ts)}


def media_to_dict(media: MediaMetadata) -> Dict[str, Any]:
    out: Dict[str, Any] = {'family': media.family.value}
    for f in fields(media):
        value = getattr(media, f.name)
        if value is None:
            continue
        out[_camel(f.name)] = value
    return out


def record_to_dict(record: PropertyRecord) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if value is None:
            continue
        if f.name == 'timestamps':
            value = _timestamps_to_dict(value)
        elif f.name == 'media':
            out['mediaMetadata'] = media_to_dict(value)
            continue
        elif f.name == 'kind':
            value = value.value
        out[_camel(f.name)] = value
    return out


def to_json(records: RecordOrRecords, indent: int = 2) -> str:
    if isinstance(records, PropertyRecord):
        payload: Any = record_to_dict(records)
    else:
        payload = [record_to_dict(r) for r in records]
    # default=str covers anything a decoder slipped into `raw`
    return json.dumps(payload, indent=indent, ensure_ascii=False, default=str)


def save_json(records: RecordOrRecords, dest: Path, indent: int = 2):
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(to_json(records, indent=indent), encoding='utf-8')
