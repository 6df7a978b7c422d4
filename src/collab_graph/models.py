"""Lightweight typed data models for clarity in function signatures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(eq=False)
class Node:
    id: str
    country: str = 'Unknown'
    affiliation: str = 'N/A'
    degree: int = 0
    x: Optional[float] = None
    y: Optional[float] = None
    vx: float = 0.0
    vy: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def positioned(self) -> bool:
        return self.x is not None and self.y is not None

    @property
    def pinned(self) -> bool:
        return self.fx is not None and self.fy is not None


@dataclass(frozen=True)
class Unresolved:
    """Link endpoint known only by node id."""
    id: str


@dataclass(frozen=True, eq=False)
class Resolved:
    """Link endpoint bound to its node by the simulation."""
    node: Node

    @property
    def id(self) -> str:
        return self.node.id


Endpoint = Union[Unresolved, Resolved]


@dataclass(eq=False)
class Link:
    source: Endpoint
    target: Endpoint


@dataclass
class Dataset:
    nodes: List[Node] = field(default_factory=list)
    links: List[Link] = field(default_factory=list)


@dataclass
class PhysicsParams:
    charge_strength: float
    collision_multiplier: float
    link_strength: float


@dataclass(frozen=True)
class ViewTransform:
    """Pan/zoom transform: screen = k * point + (x, y)."""
    k: float = 1.0
    x: float = 0.0
    y: float = 0.0

    def __str__(self) -> str:
        return f"translate({self.x:g},{self.y:g}) scale({self.k:g})"


IDENTITY = ViewTransform()


@dataclass
class ViewState:
    """Interaction state owned by one GraphView instance."""
    physics: PhysicsParams
    transform: ViewTransform = IDENTITY
    legend_selection: Optional[str] = None
    active_drags: int = 0
    fitted: bool = False
