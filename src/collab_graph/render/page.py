from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import CONFIG, AppConfig
from ..data.loaders import serialize
from ..prepare import PreparedGraph

TEMPLATES_DIR = Path(__file__).with_name('templates')
TEMPLATE_NAME = 'collab_network.html.j2'


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(['html', 'xml', 'html.j2']),
    )


def build_page_context(prepared: PreparedGraph, *,
                       positions: Optional[Dict[str, Tuple[float, float]]] = None,
                       config: AppConfig = CONFIG,
                       title: str = 'Author Collaboration Network') -> Dict[str, Any]:
    """Collect everything the page script needs as JSON-ready values.

    ``positions`` seeds node coordinates from a headless pre-layout; seeded
    pages start the browser simulation cooler so the layout does not scatter.
    """
    positions = positions or {}
    nodes = []
    for n in prepared.nodes:
        record = {
            'id': n.id,
            'country': n.country,
            'affiliation': n.affiliation,
            'degree': n.degree,
            'color': prepared.color(n),
            'radius': round(prepared.node_radius(n), 3),
            'extra': serialize(n.extra),
        }
        if n.id in positions:
            x, y = positions[n.id]
            record['x'], record['y'] = round(float(x), 2), round(float(y), 2)
        nodes.append(record)
    links = [{'source': lk.source.id, 'target': lk.target.id} for lk in prepared.links]
    legend = [{'country': c, 'count': count, 'color': color}
              for c, count, color in prepared.legend_entries()]
    physics = config.physics
    canvas = config.canvas
    return {
        'title': title,
        'graph': {'nodes': nodes, 'links': links},
        'legend': legend,
        'physics': {
            'chargeStrength': physics.charge_strength,
            'collisionMultiplier': physics.collision_multiplier,
            'linkStrength': physics.link_strength,
            'linkDistance': physics.link_distance,
            'collisionMargin': physics.collision_margin,
            'positionStrength': physics.position_strength,
            'sliderAlpha': physics.slider_alpha,
            'dragAlphaTarget': physics.drag_alpha_target,
        },
        'canvas': {
            'width': canvas.width,
            'height': canvas.height,
            'minZoom': canvas.min_zoom,
            'maxZoom': canvas.max_zoom,
            'fitPadding': canvas.fit_padding,
            'fitMaxScale': canvas.fit_max_scale,
            'fitDelayMs': int(canvas.fit_delay * 1000),
            'fitDurationMs': int(canvas.fit_duration * 1000),
        },
        'initial_alpha': 0.3 if positions else 1.0,
        'stats': {
            'nodes': len(nodes),
            'links': len(links),
            'countries': len(prepared.country_counts),
        },
    }


def render_page(prepared: PreparedGraph, *,
                positions: Optional[Dict[str, Tuple[float, float]]] = None,
                config: AppConfig = CONFIG,
                title: str = 'Author Collaboration Network') -> str:
    """Render the standalone network page with Jinja2."""
    template = _environment().get_template(TEMPLATE_NAME)
    context = build_page_context(prepared, positions=positions, config=config, title=title)
    return template.render(**context)
