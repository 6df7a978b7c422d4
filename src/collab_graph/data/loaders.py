"""Dataset loading and serialization used by the view, the page and the CLI.

These functions encapsulate the raw JSON shape so that the rendering code only
deals with ``Dataset``/``Node``/``Link`` objects.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..models import Dataset, Link, Node, Unresolved

logger = logging.getLogger(__name__)

ID_FIELDS = ('id', 'author', 'Author')
COUNTRY_FIELDS = ('country', 'Country')
AFFILIATION_FIELDS = ('affiliation', 'Affiliation')
_KNOWN_FIELDS = set(ID_FIELDS + COUNTRY_FIELDS + AFFILIATION_FIELDS)


class DatasetError(ValueError):
    """Raised when a dataset file does not have the nodes/links shape."""


def first_present(record: Dict[str, Any], fields: Iterable[str], default: Optional[str] = None):
    for name in fields:
        value = record.get(name)
        if value not in (None, ''):
            return value
    return default


def serialize(obj: Any) -> Any:
    """Recursively convert values into JSON-compatible structures."""
    if hasattr(obj, 'isoformat'):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [serialize(x) for x in obj]
    if hasattr(obj, 'item'):  # numpy scalars
        return obj.item()
    return obj


def _endpoint_id(value: Any) -> str:
    # Exports from D3 sometimes carry the node object instead of its id.
    if isinstance(value, dict):
        value = first_present(value, ID_FIELDS, '')
    return '' if value is None else str(value)


def parse_node(record: Dict[str, Any]) -> Node:
    node_id = first_present(record, ID_FIELDS, '')
    return Node(
        id=str(node_id),
        country=str(first_present(record, COUNTRY_FIELDS, 'Unknown')),
        affiliation=str(first_present(record, AFFILIATION_FIELDS, 'N/A')),
        extra={k: serialize(v) for k, v in record.items() if k not in _KNOWN_FIELDS},
    )


def parse_dataset(raw: Any) -> Dataset:
    """Build a ``Dataset`` from decoded JSON.

    Missing ``nodes``/``links`` keys are treated as empty lists; anything that
    is not a list of objects there is rejected.
    """
    if not isinstance(raw, dict):
        raise DatasetError(f"dataset must be a JSON object, got {type(raw).__name__}")
    raw_nodes = raw.get('nodes') or []
    raw_links = raw.get('links') or []
    if not isinstance(raw_nodes, list) or not isinstance(raw_links, list):
        raise DatasetError("'nodes' and 'links' must be lists")

    nodes = [parse_node(r) for r in raw_nodes if isinstance(r, dict)]
    links = [
        Link(source=Unresolved(_endpoint_id(r.get('source'))),
             target=Unresolved(_endpoint_id(r.get('target'))))
        for r in raw_links if isinstance(r, dict)
    ]
    skipped = (len(raw_nodes) - len(nodes)) + (len(raw_links) - len(links))
    if skipped:
        logger.warning(f"Skipped {skipped} non-object entries in dataset")
    return Dataset(nodes=nodes, links=links)


def load_dataset(path) -> Dataset:
    path = Path(path)
    logger.info(f"Reading dataset: {path}")
    raw = json.loads(path.read_text(encoding='utf-8'))
    dataset = parse_dataset(raw)
    logger.info(f"Loaded {len(dataset.nodes)} nodes and {len(dataset.links)} links")
    return dataset
