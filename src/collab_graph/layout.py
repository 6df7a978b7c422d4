from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import networkx as nx
import numpy as np

from .models import Link, Node, Resolved


Positions = Dict[str, Tuple[float, float]]

ALPHA_MIN = 0.001
ALPHA_DECAY = 1 - ALPHA_MIN ** (1 / 300)
VELOCITY_DECAY = 0.4


# --- Force specs -----------------------------------------------------------
# Plain descriptions of the forces; the solver decides how to honor them.

@dataclass(frozen=True)
class LinkForce:
    strength: float
    distance: float = 50.0


@dataclass(frozen=True)
class ChargeForce:
    strength: float


@dataclass(frozen=True)
class CollideForce:
    radius: Callable[[Node], float]


@dataclass(frozen=True)
class CenterForce:
    x: float
    y: float


@dataclass(frozen=True)
class PositionForce:
    axis: str  # 'x' or 'y'
    target: float
    strength: float = 0.1


class Simulation(Protocol):
    nodes: List[Node]
    alpha: float
    running: bool

    def add_force(self, name: str, force) -> None: ...
    def tick(self) -> Positions: ...
    def set_energy(self, level: float) -> None: ...
    def set_target_energy(self, level: float) -> None: ...
    def restart(self) -> None: ...
    def stop(self) -> None: ...
    def on(self, event: str, callback: Callable[[], None]) -> None: ...


def resolve_links(nodes: Sequence[Node], links: Sequence[Link]) -> List[Link]:
    """Bind every endpoint to its node object; returns the links that resolved."""
    by_id = {n.id: n for n in nodes}
    resolved = []
    for link in links:
        source = by_id.get(link.source.id)
        target = by_id.get(link.target.id)
        if source is None or target is None:
            continue
        link.source = Resolved(source)
        link.target = Resolved(target)
        resolved.append(link)
    return resolved


def seed_positions(nodes: Sequence[Node], spacing: float = 10.0) -> None:
    """Place unpositioned nodes on a golden-angle spiral around the origin."""
    golden_angle = np.pi * (3 - np.sqrt(5.0))
    for i, n in enumerate(nodes):
        if n.positioned:
            continue
        radius = spacing * np.sqrt(0.5 + i)
        angle = i * golden_angle
        n.x = float(radius * np.cos(angle))
        n.y = float(radius * np.sin(angle))


class BaseSimulation:
    """Energy bookkeeping and events shared by solvers.

    Subclasses implement ``_step(alpha)`` which moves unpinned nodes.
    """

    def __init__(self, nodes: Sequence[Node], links: Sequence[Link] = ()):
        self.nodes: List[Node] = list(nodes)
        self.links: List[Link] = resolve_links(self.nodes, links)
        self.forces: Dict[str, object] = {}
        self.alpha = 1.0
        self.alpha_target = 0.0
        self.alpha_min = ALPHA_MIN
        self.alpha_decay = ALPHA_DECAY
        self.running = True
        self._listeners: Dict[str, List[Callable[[], None]]] = {'tick': [], 'end': []}
        seed_positions(self.nodes)

    def add_force(self, name: str, force) -> None:
        self.forces[name] = force

    def set_energy(self, level: float) -> None:
        self.alpha = float(level)

    def set_target_energy(self, level: float) -> None:
        self.alpha_target = float(level)

    def restart(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def on(self, event: str, callback: Callable[[], None]) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def _emit(self, event: str) -> None:
        for cb in list(self._listeners.get(event, [])):
            cb()

    def positions(self) -> Positions:
        return {n.id: (n.x, n.y) for n in self.nodes}

    def tick(self) -> Positions:
        """Advance one step; emits ``tick`` and, once settled, ``end``."""
        if not self.running:
            return self.positions()
        self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay
        self._step(self.alpha)
        for n in self.nodes:
            if n.fx is not None:
                n.x, n.vx = n.fx, 0.0
            if n.fy is not None:
                n.y, n.vy = n.fy, 0.0
        self._emit('tick')
        if self.alpha < self.alpha_min:
            self.running = False
            self._emit('end')
        return self.positions()

    def run(self, max_ticks: int = 300) -> int:
        ticks = 0
        while self.running and ticks < max_ticks:
            self.tick()
            ticks += 1
        return ticks

    def _step(self, alpha: float) -> None:
        raise NotImplementedError


class SpringSimulation(BaseSimulation):
    """Force layout backed by networkx's Fruchterman-Reingold solver.

    networkx solves the equilibrium for the current forces and pins; each tick
    eases nodes toward it with damped velocity scaled by ``alpha``. The
    equilibrium is re-solved only when a force is replaced or a pin moves.
    Center and positioning forces are applied on top, the way D3 composes
    them.
    """

    def __init__(self, nodes: Sequence[Node], links: Sequence[Link] = (),
                 seed: Optional[int] = 42, iterations: int = 50):
        super().__init__(nodes, links)
        self.seed = seed
        self.iterations = iterations
        self._target: Optional[np.ndarray] = None
        self._target_key = None

    def add_force(self, name: str, force) -> None:
        super().add_force(name, force)
        self._target = None

    def _spacing(self) -> float:
        link = self.forces.get('link')
        charge = self.forces.get('charge')
        collide = self.forces.get('collide')
        k = link.distance if link is not None else 50.0
        if charge is not None:
            k *= np.sqrt(abs(charge.strength) / 180.0) if charge.strength else 0.1
        if collide is not None and self.nodes:
            k = max(k, float(np.mean([collide.radius(n) for n in self.nodes])))
        return max(float(k), 1.0)

    def _graph(self) -> nx.Graph:
        link = self.forces.get('link')
        weight = link.strength if link is not None else 0.0
        graph = nx.Graph()
        graph.add_nodes_from(range(len(self.nodes)))
        index = {id(n): i for i, n in enumerate(self.nodes)}
        for lk in self.links:
            s, t = index[id(lk.source.node)], index[id(lk.target.node)]
            if s != t:
                graph.add_edge(s, t, weight=max(weight, 1e-6))
        return graph

    def _solve(self, current: np.ndarray, pinned: List[int]) -> np.ndarray:
        key = tuple((i, self.nodes[i].fx, self.nodes[i].fy) for i in pinned)
        if self._target is not None and key == self._target_key:
            return self._target
        pos = {i: (self.nodes[i].fx, self.nodes[i].fy) if self.nodes[i].pinned else tuple(current[i])
               for i in range(len(self.nodes))}
        solved = nx.spring_layout(
            self._graph(), pos=pos, fixed=pinned or None, k=self._spacing(),
            iterations=self.iterations, weight='weight', scale=None, seed=self.seed,
        )
        self._target = np.array([solved[i] for i in range(len(self.nodes))], dtype=float)
        self._target_key = key
        return self._target

    def _step(self, alpha: float) -> None:
        count = len(self.nodes)
        if not count:
            return
        current = np.array([[n.x, n.y] for n in self.nodes], dtype=float)
        velocity = np.array([[n.vx, n.vy] for n in self.nodes], dtype=float)
        velocity *= 1 - VELOCITY_DECAY
        if count > 1:
            pinned = [i for i, n in enumerate(self.nodes) if n.pinned]
            target = self._solve(current, pinned)
            if not pinned:
                # Only the shape matters; translation belongs to the center force.
                target = target - target.mean(axis=0) + current.mean(axis=0)
            velocity += (target - current) * alpha

        for force in self.forces.values():
            if isinstance(force, PositionForce):
                axis = 0 if force.axis == 'x' else 1
                velocity[:, axis] += (force.target - current[:, axis]) * force.strength * alpha

        moved = current + velocity
        center = next((f for f in self.forces.values() if isinstance(f, CenterForce)), None)
        if center is not None:
            moved -= moved.mean(axis=0) - np.array([center.x, center.y])

        for i, n in enumerate(self.nodes):
            n.vx, n.vy = float(velocity[i, 0]), float(velocity[i, 1])
            n.x, n.y = float(moved[i, 0]), float(moved[i, 1])
