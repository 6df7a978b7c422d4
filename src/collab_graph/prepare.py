from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .data.loaders import parse_dataset
from .models import Dataset, Link, Node

logger = logging.getLogger(__name__)

# d3.schemeTableau10
TABLEAU10 = [
    '#4e79a7', '#f28e2c', '#e15759', '#76b7b2', '#59a14f',
    '#edc949', '#af7aa1', '#ff9da7', '#9c755f', '#bab0ab',
]
OTHER_COLOR = '#999999'
TOP_COUNTRIES = 10
RADIUS_RANGE = (8.0, 28.0)


class SqrtScale:
    """Square-root scale: area, not radius, grows linearly with the input."""

    def __init__(self, domain: Tuple[float, float], range_: Tuple[float, float]):
        self.domain = (float(domain[0]), float(domain[1]))
        self.range = (float(range_[0]), float(range_[1]))

    def __call__(self, value):
        d0, d1 = np.sqrt(self.domain)
        r0, r1 = self.range
        v = np.sqrt(np.maximum(np.asarray(value, dtype=float), 0.0))
        if d1 == d0:
            # Degenerate domain maps everything to the middle of the range.
            t = np.full_like(v, 0.5)
        else:
            t = (v - d0) / (d1 - d0)
        out = r0 + t * (r1 - r0)
        return float(out) if out.ndim == 0 else out


class CountryPalette:
    """Ordinal color mapping over the top countries; the rest share gray."""

    def __init__(self, countries: Sequence[str], scheme: Sequence[str] = TABLEAU10, other: str = OTHER_COLOR):
        self.countries = list(countries)
        self.other = other
        self._colors = {c: scheme[i % len(scheme)] for i, c in enumerate(self.countries)}

    def __call__(self, country: str) -> str:
        return self._colors.get(country, self.other)


@dataclass
class PreparedGraph:
    nodes: List[Node]
    links: List[Link]
    country_counts: Dict[str, int]
    top_countries: List[str]
    palette: CountryPalette
    radius: SqrtScale
    max_degree: int
    dropped_links: List[Link] = field(default_factory=list)

    def color(self, node: Node) -> str:
        return self.palette(node.country)

    def node_radius(self, node: Node) -> float:
        return self.radius(node.degree)

    def legend_entries(self) -> List[Tuple[str, int, str]]:
        return [(c, self.country_counts[c], self.palette(c)) for c in self.top_countries]


def normalize_nodes(nodes: Sequence[Node]) -> None:
    for n in nodes:
        n.id = '' if n.id is None else str(n.id)
        n.country = n.country or 'Unknown'
        n.affiliation = n.affiliation or 'N/A'


def drop_dangling_links(nodes: Sequence[Node], links: Sequence[Link]) -> Tuple[List[Link], List[Link]]:
    ids = {n.id for n in nodes}
    kept, dropped = [], []
    for link in links:
        if link.source.id in ids and link.target.id in ids:
            kept.append(link)
        else:
            dropped.append(link)
    if dropped:
        logger.warning(f"Dropped {len(dropped)} links with unknown endpoints")
    return kept, dropped


def compute_degrees(nodes: Sequence[Node], links: Sequence[Link]) -> Dict[str, int]:
    degree: Dict[str, int] = {n.id: 0 for n in nodes}
    for link in links:
        for node_id in (link.source.id, link.target.id):
            if node_id in degree:
                degree[node_id] += 1
    for n in nodes:
        n.degree = degree[n.id]
    return degree


def count_countries(nodes: Sequence[Node]) -> Dict[str, int]:
    # Counter keeps first-encounter order, which the ranking relies on for ties.
    return dict(Counter(n.country for n in nodes))


def rank_countries(counts: Dict[str, int], limit: int = TOP_COUNTRIES) -> List[str]:
    ordered = sorted(counts.items(), key=lambda item: -item[1])
    return [country for country, _ in ordered[:limit]]


def prepare(dataset) -> PreparedGraph:
    """Normalize a dataset and derive everything the drawing needs.

    Accepts a ``Dataset`` or its raw JSON-decoded form. Nodes are mutated in
    place (defaults, degree).
    """
    if not isinstance(dataset, Dataset):
        dataset = parse_dataset(dataset)
    normalize_nodes(dataset.nodes)
    links, dropped = drop_dangling_links(dataset.nodes, dataset.links)
    compute_degrees(dataset.nodes, links)

    counts = count_countries(dataset.nodes)
    top = rank_countries(counts)
    max_degree = max((n.degree for n in dataset.nodes), default=0)
    return PreparedGraph(
        nodes=list(dataset.nodes),
        links=links,
        country_counts=counts,
        top_countries=top,
        palette=CountryPalette(top),
        radius=SqrtScale((0, max_degree), RADIUS_RANGE),
        max_degree=max_degree,
        dropped_links=dropped,
    )
