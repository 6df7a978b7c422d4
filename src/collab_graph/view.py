"""Interactive collaboration network view.

``GraphView`` mounts a prepared dataset onto a drawable surface, runs a force
simulation behind it and owns every interaction: hover highlight, legend
filtering, tooltip, physics sliders, drag pinning, pan/zoom and the one-time
auto-fit once the layout first comes to rest.

The simulation is injected through ``simulation_factory(nodes, links)`` so
the interaction logic can be exercised without a physics engine.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .config import CONFIG, AppConfig
from .layout import (CenterForce, ChargeForce, CollideForce, LinkForce,
                     PositionForce, Simulation, SpringSimulation)
from .models import Link, Node, PhysicsParams, ViewState, ViewTransform
from .prepare import PreparedGraph, prepare
from .surface import Document, Element, Event, TimerHandle

logger = logging.getLogger(__name__)

LINK_COLOR = '#aab2c5'
INACTIVE = 'inactive'

# parameter -> (slider id, value display id, display format)
SLIDER_BINDINGS: Dict[str, Tuple[str, str, Callable[[float], str]]] = {
    'charge_strength': ('charge-slider', 'charge-value', lambda v: str(int(round(v)))),
    'collision_multiplier': ('collide-slider', 'collide-value', lambda v: f"{v:.1f}"),
    'link_strength': ('link-slider', 'link-value', lambda v: f"{v:.2f}"),
}


class GraphView:
    def __init__(self, document: Document,
                 simulation_factory: Callable[..., Simulation] = SpringSimulation,
                 config: AppConfig = CONFIG):
        self.document = document
        self.simulation_factory = simulation_factory
        self.config = config
        self.graph: Optional[PreparedGraph] = None
        self.simulation: Optional[Simulation] = None
        self.state: Optional[ViewState] = None
        self.surface: Optional[Element] = None
        self.main: Optional[Element] = None
        self.node_elements: List[Tuple[Node, Element]] = []
        self.link_elements: List[Tuple[Link, Element]] = []
        self.legend_items: Dict[str, Element] = {}
        self.last_transition: Optional[float] = None
        self._nodes_by_id: Dict[str, Node] = {}
        self._fit_timer: Optional[TimerHandle] = None

    # --- building ----------------------------------------------------------

    def render(self, dataset, surface: Element) -> None:
        """Draw ``dataset`` onto ``surface``, replacing whatever was there."""
        if self.simulation is not None:
            self.simulation.stop()
        if self._fit_timer is not None:
            self._fit_timer.cancel()
            self._fit_timer = None
        surface.clear()
        self.surface = surface
        self.graph = graph = prepare(dataset)
        physics = self.config.physics
        self.state = ViewState(physics=PhysicsParams(
            charge_strength=physics.charge_strength,
            collision_multiplier=physics.collision_multiplier,
            link_strength=physics.link_strength,
        ))
        self.last_transition = None
        self._nodes_by_id = {n.id: n for n in graph.nodes}

        self.main = surface.append('g')
        self._draw_links(self.main.append('g', class_name='links'))
        self._draw_nodes(self.main.append('g', class_name='nodes'))
        self.document.body.on('click', lambda event: self.hide_tooltip())
        surface.on('zoom', lambda event: self.zoom_to(event.transform))

        self.simulation = self.simulation_factory(graph.nodes, graph.links)
        for name in ('link', 'charge', 'collide'):
            self._apply_force(name)
        canvas = self.config.canvas
        cx, cy = canvas.width / 2, canvas.height / 2
        self.simulation.add_force('center', CenterForce(cx, cy))
        self.simulation.add_force('x', PositionForce('x', cx, physics.position_strength))
        self.simulation.add_force('y', PositionForce('y', cy, physics.position_strength))
        self.simulation.on('tick', self._ticked)
        self.simulation.on('end', self._settled)

        self._build_legend()
        self._bind_sliders()

        self.simulation.set_energy(1.0)
        self.simulation.restart()
        logger.info(f"Rendered {len(graph.nodes)} nodes, {len(graph.links)} links, "
                    f"{len(graph.top_countries)} legend countries")

    def _draw_links(self, parent: Element) -> None:
        self.link_elements = []
        for link in self.graph.links:
            line = parent.append('line')
            line.datum = link
            line.set_attr('stroke', LINK_COLOR).set_attr('stroke-width', 1.5)
            self.link_elements.append((link, line))

    def _draw_nodes(self, parent: Element) -> None:
        self.node_elements = []
        for node in self.graph.nodes:
            radius = self.graph.node_radius(node)
            group = parent.append('g')
            group.datum = node
            circle = group.append('circle')
            circle.set_attr('r', radius).set_attr('fill', self.graph.color(node))
            circle.set_attr('stroke', '#fff').set_attr('stroke-width', 3)
            circle.set_style('cursor', 'pointer')
            label = group.append('text').set_text(node.id)
            label.set_attr('text-anchor', 'middle').set_attr('dy', radius + 20)
            label.set_style('font-size', '14px').set_style('pointer-events', 'none')
            self._bind_node(group, node)
            self.node_elements.append((node, group))

    def _bind_node(self, group: Element, node: Node) -> None:
        def on_click(event: Event) -> None:
            self.show_tooltip(node, event.x, event.y)
            event.stop_propagation()

        group.on('click', on_click)
        group.on('mouseenter', lambda event: self.hover(node))
        group.on('mouseleave', lambda event: self.unhover())
        group.on('dragstart', lambda event: self.drag_start(node))
        group.on('drag', lambda event: self.drag_move(node, event.x, event.y))
        group.on('dragend', lambda event: self.drag_end(node))

    def _build_legend(self) -> None:
        self.legend_items = {}
        container = self.document.get_element_by_id('legend-items')
        if container is None:
            return
        container.clear()
        for country, count, color in self.graph.legend_entries():
            item = container.append('div', class_name='legend-item')
            item.datum = country
            item.append('div', class_name='legend-color').set_style('background', color)
            item.append('span').set_text(f"{country} ({count})")
            item.on('click', lambda event, c=country: self.click_legend(c))
            self.legend_items[country] = item

    def _bind_sliders(self) -> None:
        for name, (slider_id, value_id, fmt) in SLIDER_BINDINGS.items():
            value = getattr(self.state.physics, name)
            slider = self.document.get_element_by_id(slider_id)
            if slider is not None:
                slider.set_attr('value', value)
                slider.on('input', lambda event, n=name: self._slider_input(n, event))
            display = self.document.get_element_by_id(value_id)
            if display is not None:
                display.set_text(fmt(value))

    # --- simulation --------------------------------------------------------

    def _apply_force(self, name: str) -> None:
        physics = self.state.physics
        if name == 'link':
            force = LinkForce(physics.link_strength, self.config.physics.link_distance)
        elif name == 'charge':
            force = ChargeForce(physics.charge_strength)
        else:
            multiplier = physics.collision_multiplier
            margin = self.config.physics.collision_margin
            radius = self.graph.radius
            force = CollideForce(lambda n: radius(n.degree) * multiplier + margin)
        self.simulation.add_force(name, force)

    def _ticked(self) -> None:
        for node, group in self.node_elements:
            if node.positioned:
                group.set_attr('transform', f"translate({node.x},{node.y})")
        for link, line in self.link_elements:
            source = self._nodes_by_id[link.source.id]
            target = self._nodes_by_id[link.target.id]
            line.set_attr('x1', source.x).set_attr('y1', source.y)
            line.set_attr('x2', target.x).set_attr('y2', target.y)

    def _settled(self) -> None:
        if self.state.fitted:
            return
        self.state.fitted = True
        self._fit_timer = self.document.scheduler.call_later(self.config.canvas.fit_delay, self.auto_fit)

    def settle(self, max_ticks: int = 300) -> int:
        """Tick until the layout rests (or ``max_ticks``), then run due timers."""
        ticks = 0
        while ticks < max_ticks and getattr(self.simulation, 'running', True):
            self.simulation.tick()
            ticks += 1
        self.document.scheduler.advance(self.config.canvas.fit_delay)
        logger.info(f"Layout settled after {ticks} ticks")
        return ticks

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {n.id: (n.x, n.y) for n in self.graph.nodes if n.positioned}

    # --- highlight ---------------------------------------------------------

    def _apply_filter(self, country: Optional[str]) -> None:
        for node, group in self.node_elements:
            group.classed(INACTIVE, country is not None and node.country != country)
        for link, line in self.link_elements:
            source = self._nodes_by_id[link.source.id].country
            target = self._nodes_by_id[link.target.id].country
            line.classed(INACTIVE, country is not None and source != country and target != country)

    def hover(self, node: Node) -> None:
        self._apply_filter(node.country)

    def unhover(self) -> None:
        # Falls back to the legend selection, if any.
        self._apply_filter(self.state.legend_selection)

    def click_legend(self, country: str) -> None:
        item = self.legend_items.get(country)
        if item is not None:
            was_active = item.has_class('active')
        else:
            was_active = self.state.legend_selection == country
        for other in self.legend_items.values():
            other.classed('active', False)
        if not was_active and item is not None:
            item.classed('active', True)
        self.state.legend_selection = None if was_active else country
        self._apply_filter(self.state.legend_selection)

    # --- tooltip -----------------------------------------------------------

    def show_tooltip(self, node: Node, x: float, y: float) -> None:
        tooltip = self.document.get_element_by_id('tooltip')
        if tooltip is None:
            return
        for field_id, value in (('tooltip-author', node.id),
                                ('tooltip-affiliation', node.affiliation),
                                ('tooltip-country', node.country),
                                ('tooltip-degree', node.degree)):
            el = self.document.get_element_by_id(field_id)
            if el is not None:
                el.set_text(value)
        tooltip.set_style('left', f"{x + 20:g}px")
        tooltip.set_style('top', f"{y - 20:g}px")
        tooltip.set_style('display', 'block')

    def hide_tooltip(self) -> None:
        tooltip = self.document.get_element_by_id('tooltip')
        if tooltip is not None:
            tooltip.set_style('display', 'none')

    # --- physics sliders ---------------------------------------------------

    def _slider_input(self, name: str, event: Event) -> None:
        try:
            value = float(event.target.get_attr('value'))
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric slider value for {name}")
            return
        self.set_parameter(name, value)

    def set_parameter(self, name: str, value: float) -> None:
        """Update a physics parameter, its display and the live force."""
        slider_id, value_id, fmt = SLIDER_BINDINGS[name]
        setattr(self.state.physics, name, float(value))
        display = self.document.get_element_by_id(value_id)
        if display is not None:
            display.set_text(fmt(float(value)))
        force = {'charge_strength': 'charge', 'collision_multiplier': 'collide',
                 'link_strength': 'link'}[name]
        self._apply_force(force)
        self.simulation.set_energy(self.config.physics.slider_alpha)
        self.simulation.restart()

    # --- drag --------------------------------------------------------------

    def drag_start(self, node: Node) -> None:
        if not self.state.active_drags:
            self.simulation.set_target_energy(self.config.physics.drag_alpha_target)
            self.simulation.restart()
        self.state.active_drags += 1
        node.fx, node.fy = node.x, node.y

    def drag_move(self, node: Node, x: float, y: float) -> None:
        node.fx, node.fy = x, y

    def drag_end(self, node: Node) -> None:
        self.state.active_drags = max(0, self.state.active_drags - 1)
        if not self.state.active_drags:
            self.simulation.set_target_energy(0.0)
        node.fx = node.fy = None

    # --- zoom --------------------------------------------------------------

    def zoom_to(self, transform: ViewTransform, duration: Optional[float] = None) -> None:
        canvas = self.config.canvas
        k = min(max(transform.k, canvas.min_zoom), canvas.max_zoom)
        if k != transform.k:
            transform = ViewTransform(k, transform.x, transform.y)
        self.state.transform = transform
        self.main.set_attr('transform', str(transform))
        self.last_transition = duration

    def content_bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """Extent of the positioned node centers as ``(x, y, width, height)``."""
        points = np.array([(n.x, n.y) for n in self.graph.nodes if n.positioned], dtype=float)
        if not len(points):
            return None
        lo, hi = points.min(axis=0), points.max(axis=0)
        return float(lo[0]), float(lo[1]), float(hi[0] - lo[0]), float(hi[1] - lo[1])

    def auto_fit(self) -> bool:
        """Center and scale the content into the surface; False when nothing to fit."""
        bounds = self.content_bounds()
        if bounds is None or not bounds[2]:
            return False
        x, y, width, height = bounds
        canvas = self.config.canvas
        padding = canvas.fit_padding
        scale = min(
            (canvas.width - padding) / width,
            (canvas.height - padding) / height if height else float('inf'),
            canvas.fit_max_scale,
        )
        scale = max(scale, canvas.min_zoom)
        cx, cy = x + width / 2, y + height / 2
        transform = ViewTransform(scale, canvas.width / 2 - scale * cx, canvas.height / 2 - scale * cy)
        self.zoom_to(transform, duration=canvas.fit_duration)
        return True
