"""
Providers wrap their order responses differently. Each matcher below either
recognises a shape and returns the records inside it, or returns None to let
the next one try. Order matters: the first matcher to recognise the payload
wins, the last one accepts anything.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from lsps1client.lsp.adapters import ORDER_ID_FIELDS, lookup

logger = logging.getLogger(name=__name__)

Record = Dict[str, Any]
ShapeMatcher = Callable[[Any], Optional[List[Record]]]

COLLECTION_FIELDS = ('channels', 'orders')


def _records(items: List[Any]) -> List[Record]:
    return [item for item in items if isinstance(item, dict)]


def match_collection(payload: Any) -> Optional[List[Record]]:
    if not isinstance(payload, dict):
        return None
    for field in COLLECTION_FIELDS:
        if isinstance(payload.get(field), list):
            return _records(payload[field])
    return None


def match_array(payload: Any) -> Optional[List[Record]]:
    if isinstance(payload, list):
        return _records(payload)
    return None


def match_single(payload: Any) -> Optional[List[Record]]:
    if isinstance(payload, dict) and lookup(payload, ORDER_ID_FIELDS) is not None:
        return [payload]
    return None


def match_nested_data(payload: Any) -> Optional[List[Record]]:
    if not isinstance(payload, dict) or 'data' not in payload:
        return None
    data = payload['data']
    for _, matcher in SHAPE_MATCHERS[:3]:
        records = matcher(data)
        if records is not None:
            return records
    if isinstance(data, dict):
        return [data]
    return None


def match_whole(payload: Any) -> Optional[List[Record]]:
    if isinstance(payload, dict):
        return [payload]
    return []


SHAPE_MATCHERS: Tuple[Tuple[str, ShapeMatcher], ...] = (
    ('collection', match_collection),
    ('array', match_array),
    ('single', match_single),
    ('nested_data', match_nested_data),
    ('whole', match_whole),
)


def normalize_envelope(payload: Any) -> List[Record]:
    for name, matcher in SHAPE_MATCHERS:
        records = matcher(payload)
        if records is not None:
            logger.debug(f'response envelope matched {name!r}, {len(records)} record(s)')
            return records
    return []
