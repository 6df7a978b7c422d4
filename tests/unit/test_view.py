import pytest


class FakeSimulation:
    """Records what the view asks of the physics engine."""

    def __init__(self, nodes, links):
        self.nodes = list(nodes)
        self.links = list(links)
        self.forces = {}
        self.alpha = 1.0
        self.alpha_target = 0.0
        self.running = True
        self.restarts = 0
        self.energy_log = []
        self.listeners = {}

    def add_force(self, name, force):
        self.forces[name] = force

    def set_energy(self, level):
        self.alpha = level
        self.energy_log.append(level)

    def set_target_energy(self, level):
        self.alpha_target = level

    def restart(self):
        self.running = True
        self.restarts += 1

    def stop(self):
        self.running = False

    def on(self, event, callback):
        self.listeners.setdefault(event, []).append(callback)

    def emit(self, event):
        for cb in self.listeners.get(event, []):
            cb()

    def tick(self):
        self.emit('tick')
        return {n.id: (n.x, n.y) for n in self.nodes}


DATA = {
    'nodes': [
        {'id': 'ana', 'country': 'Spain', 'affiliation': 'UPM'},
        {'id': 'ben', 'country': 'Spain', 'affiliation': 'UB'},
        {'id': 'chen', 'country': 'China', 'affiliation': 'PKU'},
        {'id': 'dia', 'country': 'Kenya', 'affiliation': 'UoN'},
    ],
    'links': [
        {'source': 'ana', 'target': 'ben'},
        {'source': 'ben', 'target': 'chen'},
        {'source': 'chen', 'target': 'dia'},
    ],
}


def make_view(data=DATA, document=None):
    from collab_graph.surface import build_host_document
    from collab_graph.view import GraphView
    sims = []

    def factory(nodes, links):
        sims.append(FakeSimulation(nodes, links))
        return sims[-1]

    document = document or build_host_document()
    view = GraphView(document, simulation_factory=factory)
    view.render(data, document.get_element_by_id('network'))
    return view, document, sims


def group_of(view, node_id):
    return next(g for n, g in view.node_elements if n.id == node_id)


def inactive_nodes(view):
    return sorted(n.id for n, g in view.node_elements if g.has_class('inactive'))


def inactive_links(view):
    return sorted((l.source.id, l.target.id) for l, el in view.link_elements if el.has_class('inactive'))


def test_render_builds_links_nodes_and_forces():
    view, document, sims = make_view()
    surface = document.get_element_by_id('network')
    assert len(surface.children) == 1
    assert len(list(surface.iter('line'))) == 3
    assert len(list(surface.iter('circle'))) == 4

    group = group_of(view, 'ben')
    circle, label = group.children
    assert circle.get_attr('r') == 28.0
    assert label.text == 'ben'
    assert label.get_attr('dy') == 48.0

    sim = sims[0]
    assert set(sim.forces) == {'link', 'charge', 'collide', 'center', 'x', 'y'}
    assert sim.forces['charge'].strength == -180
    assert sim.forces['link'].strength == 0.5
    assert sim.forces['link'].distance == 50
    assert sim.energy_log == [1.0]


def test_tick_moves_node_groups_and_link_endpoints():
    view, _, sims = make_view()
    for i, n in enumerate(view.graph.nodes):
        n.x, n.y = 10.0 * i, 5.0
    sims[0].tick()
    assert group_of(view, 'chen').get_attr('transform') == 'translate(20.0,5.0)'
    link, line = view.link_elements[1]
    assert (line.get_attr('x1'), line.get_attr('x2')) == (10.0, 20.0)


def test_sliders_initialized_with_display_text():
    _, document, _ = make_view()
    assert document.get_element_by_id('charge-slider').get_attr('value') == -180
    assert document.get_element_by_id('charge-value').text == '-180'
    assert document.get_element_by_id('collide-value').text == '2.8'
    assert document.get_element_by_id('link-value').text == '0.50'


def test_hover_dims_other_countries_and_leave_restores():
    from collab_graph.surface import Event
    view, _, _ = make_view()
    group_of(view, 'ana').dispatch(Event('mouseenter'))
    assert inactive_nodes(view) == ['chen', 'dia']
    assert inactive_links(view) == [('chen', 'dia')]

    group_of(view, 'ana').dispatch(Event('mouseleave'))
    assert inactive_nodes(view) == []
    assert inactive_links(view) == []


def test_leaving_a_node_restores_the_legend_filter():
    from collab_graph.surface import Event
    view, _, _ = make_view()
    view.legend_items['Kenya'].dispatch(Event('click'))
    group_of(view, 'ana').dispatch(Event('mouseenter'))
    assert inactive_nodes(view) == ['chen', 'dia']

    group_of(view, 'ana').dispatch(Event('mouseleave'))
    assert inactive_nodes(view) == ['ana', 'ben', 'chen']
    assert inactive_links(view) == [('ana', 'ben'), ('ben', 'chen')]
    assert view.legend_items['Kenya'].has_class('active')


def test_legend_lists_countries_with_counts():
    view, document, _ = make_view()
    items = document.get_element_by_id('legend-items').children
    labels = [item.children[1].text for item in items]
    assert labels == ['Spain (2)', 'China (1)', 'Kenya (1)']
    assert items[0].children[0].styles['background'] == '#4e79a7'


def test_legend_click_toggles_single_selection():
    from collab_graph.surface import Event
    view, _, _ = make_view()
    spain, china = view.legend_items['Spain'], view.legend_items['China']

    spain.dispatch(Event('click'))
    assert spain.has_class('active')
    assert view.state.legend_selection == 'Spain'
    assert inactive_nodes(view) == ['chen', 'dia']
    assert inactive_links(view) == [('chen', 'dia')]

    china.dispatch(Event('click'))
    assert not spain.has_class('active')
    assert china.has_class('active')
    assert inactive_nodes(view) == ['ana', 'ben', 'dia']
    assert inactive_links(view) == [('ana', 'ben')]

    china.dispatch(Event('click'))
    assert not china.has_class('active')
    assert view.state.legend_selection is None
    assert inactive_nodes(view) == []
    assert inactive_links(view) == []


def test_node_click_opens_tooltip_and_page_click_closes_it():
    from collab_graph.surface import Event
    view, document, _ = make_view()
    tooltip = document.get_element_by_id('tooltip')

    event = group_of(view, 'chen').dispatch(Event('click', x=100, y=60))
    assert event.stopped
    assert tooltip.styles['display'] == 'block'
    assert tooltip.styles['left'] == '120px'
    assert tooltip.styles['top'] == '40px'
    assert document.get_element_by_id('tooltip-author').text == 'chen'
    assert document.get_element_by_id('tooltip-affiliation').text == 'PKU'
    assert document.get_element_by_id('tooltip-country').text == 'China'
    assert document.get_element_by_id('tooltip-degree').text == '2'

    document.get_element_by_id('network').dispatch(Event('click'))
    assert tooltip.styles['display'] == 'none'


@pytest.mark.parametrize('slider_id,value,display_id,text', [
    ('charge-slider', '-300', 'charge-value', '-300'),
    ('collide-slider', '3.5', 'collide-value', '3.5'),
    ('link-slider', '0.7', 'link-value', '0.70'),
])
def test_slider_input_updates_display_force_and_energy(slider_id, value, display_id, text):
    from collab_graph.surface import Event
    view, document, sims = make_view()
    sim = sims[0]
    restarts = sim.restarts

    slider = document.get_element_by_id(slider_id)
    slider.set_attr('value', value)
    slider.dispatch(Event('input'))

    assert document.get_element_by_id(display_id).text == text
    assert sim.energy_log[-1] == 0.4
    assert sim.restarts == restarts + 1


def test_slider_changes_reach_live_forces():
    view, _, sims = make_view()
    sim = sims[0]
    view.set_parameter('charge_strength', -300)
    view.set_parameter('link_strength', 0.9)
    view.set_parameter('collision_multiplier', 2.0)

    assert sim.forces['charge'].strength == -300
    assert sim.forces['link'].strength == 0.9
    ben = next(n for n in view.graph.nodes if n.id == 'ben')
    assert sim.forces['collide'].radius(ben) == 28.0 * 2.0 + 5
    assert view.state.physics.charge_strength == -300


def test_non_numeric_slider_value_is_ignored():
    from collab_graph.surface import Event
    view, document, sims = make_view()
    slider = document.get_element_by_id('link-slider')
    slider.set_attr('value', 'abc')
    slider.dispatch(Event('input'))
    assert view.state.physics.link_strength == 0.5


def test_drag_pins_follows_and_releases():
    from collab_graph.surface import Event
    view, _, sims = make_view()
    sim = sims[0]
    node = view.graph.nodes[0]
    node.x, node.y = 3.0, 4.0
    group = group_of(view, node.id)

    group.dispatch(Event('dragstart'))
    assert (node.fx, node.fy) == (3.0, 4.0)
    assert sim.alpha_target == 0.3

    group.dispatch(Event('drag', x=50, y=70))
    assert (node.fx, node.fy) == (50, 70)

    group.dispatch(Event('dragend'))
    assert node.fx is None and node.fy is None
    assert sim.alpha_target == 0.0
    assert view.state.active_drags == 0


def test_drag_end_with_other_gesture_active_keeps_energy_target():
    view, _, sims = make_view()
    sim = sims[0]
    a, b = view.graph.nodes[:2]
    view.drag_start(a)
    restarts = sim.restarts
    view.drag_start(b)
    assert sim.restarts == restarts
    assert view.state.active_drags == 2

    view.drag_end(a)
    assert a.fx is None
    assert b.fx is not None
    assert sim.alpha_target == 0.3

    view.drag_end(b)
    assert sim.alpha_target == 0.0
    assert view.state.active_drags == 0


def test_zoom_is_clamped_to_scale_extent():
    from collab_graph.models import ViewTransform
    from collab_graph.surface import Event
    view, document, _ = make_view()
    surface = document.get_element_by_id('network')

    surface.dispatch(Event('zoom', transform=ViewTransform(50, 10, 20)))
    assert view.state.transform == ViewTransform(10, 10, 20)
    assert view.main.get_attr('transform') == 'translate(10,20) scale(10)'

    view.zoom_to(ViewTransform(0.01, 0, 0))
    assert view.state.transform.k == 0.2


def test_auto_fit_noop_for_zero_width():
    from collab_graph.models import IDENTITY
    view, _, _ = make_view({'nodes': [{'id': 'solo'}], 'links': []})
    view.graph.nodes[0].x, view.graph.nodes[0].y = 12.0, 30.0
    assert view.auto_fit() is False
    assert view.state.transform == IDENTITY
    assert view.main.get_attr('transform') is None


def test_auto_fit_noop_before_any_position():
    view, _, _ = make_view()
    assert view.auto_fit() is False


def test_auto_fit_centers_and_caps_scale():
    view, _, _ = make_view()
    coords = [(0.0, 0.0), (100.0, 50.0), (50.0, 25.0), (20.0, 10.0)]
    for n, (x, y) in zip(view.graph.nodes, coords):
        n.x, n.y = x, y
    assert view.auto_fit() is True
    t = view.state.transform
    assert t.k == pytest.approx(1.8)
    assert t.x == pytest.approx(800 - 1.8 * 50)
    assert t.y == pytest.approx(500 - 1.8 * 25)
    assert view.last_transition == 1.2


def test_settle_event_schedules_fit_once():
    view, document, sims = make_view()
    for n, (x, y) in zip(view.graph.nodes, [(0, 0), (400, 0), (0, 300), (400, 300)]):
        n.x, n.y = float(x), float(y)
    sim = sims[0]

    sim.emit('end')
    sim.emit('end')
    assert document.scheduler.pending == 1
    assert document.scheduler.advance(0.4) == 0
    assert document.scheduler.advance(0.1) == 1
    assert view.state.transform.k == pytest.approx(min(1500 / 400, 900 / 300, 1.8))


def test_rerender_replaces_content_and_stops_previous_simulation():
    view, document, sims = make_view()
    surface = document.get_element_by_id('network')
    view.render({'nodes': [{'id': 'x', 'country': 'Peru'}], 'links': []}, surface)

    assert len(surface.children) == 1
    assert len(list(surface.iter('circle'))) == 1
    assert sims[0].running is False
    assert list(view.legend_items) == ['Peru']
    assert len(document.get_element_by_id('legend-items').children) == 1


def test_render_without_host_controls_does_not_raise():
    from collab_graph.surface import Document, Event
    document = Document()
    surface = document.body.append('svg', element_id='network')
    view, _, _ = make_view(document=document)
    group_of(view, 'ana').dispatch(Event('click', x=1, y=1))
    view.set_parameter('charge_strength', -50)
    view.click_legend('Spain')
    assert view.state.legend_selection == 'Spain'
    assert inactive_nodes(view) == ['chen', 'dia']


def test_rerender_cancels_pending_fit_from_previous_graph():
    from collab_graph.models import IDENTITY
    view, document, sims = make_view()
    for n, (x, y) in zip(view.graph.nodes, [(0, 0), (400, 0), (0, 300), (400, 300)]):
        n.x, n.y = float(x), float(y)
    sims[0].emit('end')
    assert document.scheduler.pending == 1

    view.render({'nodes': [{'id': 'p'}, {'id': 'q'}], 'links': []}, document.get_element_by_id('network'))
    for n, x in zip(view.graph.nodes, (0.0, 10.0)):
        n.x, n.y = x, 0.0
    assert document.scheduler.pending == 0
    assert document.scheduler.advance(1.0) == 0
    assert view.state.transform == IDENTITY
    assert view.state.fitted is False

    sims[1].emit('end')
    assert document.scheduler.advance(0.5) == 1
    assert view.state.transform.k == pytest.approx(1.8)


def test_cancelled_timer_never_runs():
    from collab_graph.surface import Scheduler
    scheduler = Scheduler()
    calls = []
    first = scheduler.call_later(0.2, lambda: calls.append('first'))
    scheduler.call_later(0.3, lambda: calls.append('second'))
    first.cancel()
    assert scheduler.pending == 1
    assert scheduler.advance(1.0) == 1
    assert calls == ['second']
