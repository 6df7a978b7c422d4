"""Headless drawable surface.

A small element tree standing in for the browser DOM: elements carry
attributes, styles, classes and text, dispatch events that bubble to their
parent, and a document owns id lookup plus a cooperative timer queue. The
GraphView only talks to this interface, so it runs the same way under tests
and in the CLI's pre-layout pass.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


@dataclass
class Event:
    type: str
    x: float = 0.0
    y: float = 0.0
    transform: Any = None
    target: Optional['Element'] = None
    stopped: bool = False

    def stop_propagation(self) -> None:
        self.stopped = True


class Element:
    def __init__(self, tag: str, document: Optional['Document'] = None, element_id: Optional[str] = None):
        self.tag = tag
        self.document = document
        self.parent: Optional[Element] = None
        self.children: List[Element] = []
        self.attrs: Dict[str, Any] = {}
        self.styles: Dict[str, Any] = {}
        self.classes: set = set()
        self.text = ''
        self.datum: Any = None
        self._handlers: Dict[str, Callable[[Event], None]] = {}
        if element_id:
            self.set_attr('id', element_id)

    def __repr__(self) -> str:
        ident = self.attrs.get('id')
        return f"<{self.tag}{' #' + ident if ident else ''}>"

    @property
    def id(self) -> Optional[str]:
        return self.attrs.get('id')

    def append(self, tag: str, element_id: Optional[str] = None, class_name: Optional[str] = None) -> 'Element':
        child = Element(tag, self.document)
        child.parent = self
        self.children.append(child)
        if element_id:
            child.set_attr('id', element_id)
        if class_name:
            child.classed(class_name, True)
        return child

    def clear(self) -> None:
        for child in self.children:
            child._detach()
        self.children = []
        self.text = ''

    def _detach(self) -> None:
        if self.document is not None and self.id:
            self.document.forget(self)
        for child in self.children:
            child._detach()
        self.parent = None

    def set_attr(self, name: str, value: Any) -> 'Element':
        self.attrs[name] = value
        if name == 'id' and self.document is not None:
            self.document.register(self)
        return self

    def get_attr(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)

    def set_style(self, name: str, value: Any) -> 'Element':
        self.styles[name] = value
        return self

    def classed(self, name: str, on: bool) -> 'Element':
        if on:
            self.classes.add(name)
        else:
            self.classes.discard(name)
        return self

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def set_text(self, value: Any) -> 'Element':
        self.text = '' if value is None else str(value)
        return self

    def on(self, event_type: str, handler: Optional[Callable[[Event], None]]) -> 'Element':
        if handler is None:
            self._handlers.pop(event_type, None)
        else:
            self._handlers[event_type] = handler
        return self

    def dispatch(self, event: Event) -> Event:
        """Run handlers from this element up to the root until one stops it."""
        event.target = event.target or self
        node: Optional[Element] = self
        while node is not None and not event.stopped:
            handler = node._handlers.get(event.type)
            if handler is not None:
                handler(event)
            node = node.parent
        return event

    def iter(self, tag: Optional[str] = None):
        for child in self.children:
            if tag is None or child.tag == tag:
                yield child
            yield from child.iter(tag)


class TimerHandle:
    """Returned by ``Scheduler.call_later``; ``cancel()`` drops the callback."""

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Cooperative timer queue driven by ``advance``."""

    def __init__(self):
        self.now = 0.0
        self._queue: List = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self.now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (handle.due, next(self._counter), handle))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running callbacks that fall due; returns how many ran."""
        deadline = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= deadline:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = max(self.now, due)
            handle.callback()
            ran += 1
        self.now = deadline
        return ran


@dataclass
class Document:
    body: Element = field(default=None)
    scheduler: Scheduler = field(default_factory=Scheduler)
    _by_id: Dict[str, Element] = field(default_factory=dict)

    def __post_init__(self):
        if self.body is None:
            self.body = Element('body', self)

    def register(self, element: Element) -> None:
        self._by_id[element.id] = element

    def forget(self, element: Element) -> None:
        if self._by_id.get(element.id) is element:
            del self._by_id[element.id]

    def get_element_by_id(self, element_id: str) -> Optional[Element]:
        return self._by_id.get(element_id)


SLIDERS = (
    ('charge-slider', 'charge-value'),
    ('collide-slider', 'collide-value'),
    ('link-slider', 'link-value'),
)
TOOLTIP_FIELDS = ('tooltip-author', 'tooltip-affiliation', 'tooltip-country', 'tooltip-degree')


def build_host_document(*, with_legend: bool = True, with_tooltip: bool = True,
                        with_sliders: bool = True) -> Document:
    """Create a document holding the page furniture the graph view binds to.

    The ``svg`` surface gets the id ``network``.
    """
    doc = Document()
    controls = doc.body.append('div', class_name='controls')
    if with_sliders:
        for slider_id, value_id in SLIDERS:
            row = controls.append('label')
            row.append('input', element_id=slider_id).set_attr('type', 'range')
            row.append('span', element_id=value_id)
    if with_legend:
        legend = doc.body.append('div', class_name='legend')
        legend.append('div', element_id='legend-items')
    if with_tooltip:
        tooltip = doc.body.append('div', element_id='tooltip', class_name='tooltip')
        tooltip.set_style('display', 'none')
        for field_id in TOOLTIP_FIELDS:
            tooltip.append('span', element_id=field_id)
    doc.body.append('svg', element_id='network')
    return doc
