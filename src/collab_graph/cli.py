import argparse
import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import CONFIG
from .data.loaders import DatasetError, load_dataset
from .prepare import prepare
from .render.page import render_page
from .surface import build_host_document
from .view import GraphView

logger = logging.getLogger('collab_graph')


def setup_logging(log_dir=None):
    """Console plus a single rotating file; only operational steps are logged."""
    logs_dir = Path(log_dir or CONFIG.log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.INFO)
    for h in root.handlers[:]:
        root.removeHandler(h)

    simple_formatter = logging.Formatter('%(asctime)s | %(levelname)-7s | %(message)s')

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(simple_formatter)
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        logs_dir / "collab_graph.log",
        maxBytes=2*1024*1024,  # 2MB
        backupCount=2,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(simple_formatter)
    root.addHandler(file_handler)
    return root


def _load(path):
    try:
        return load_dataset(path)
    except (OSError, json.JSONDecodeError, DatasetError) as e:
        logger.error(f"Failed to load dataset {path}: {e}")
        return None


def prelayout(dataset, ticks: int):
    """Run the graph view headless and return settled node positions."""
    document = build_host_document()
    view = GraphView(document)
    view.render(dataset, document.get_element_by_id('network'))
    view.settle(max_ticks=ticks)
    return view.graph, view.positions()


def cmd_render(args: argparse.Namespace) -> int:
    dataset = _load(args.input)
    if dataset is None:
        return 1
    positions = None
    if args.prelayout > 0:
        prepared, positions = prelayout(dataset, args.prelayout)
    else:
        prepared = prepare(dataset)
    html_content = render_page(prepared, positions=positions, title=args.title)
    out = Path(args.output or CONFIG.output_html)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(html_content, encoding='utf-8')
    logger.info(f"Wrote {out}")
    print(f"Wrote {out}")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    dataset = _load(args.input)
    if dataset is None:
        return 1
    prepared = prepare(dataset)
    print(f"Authors: {len(prepared.nodes)}")
    print(f"Collaborations: {len(prepared.links)}")
    if prepared.dropped_links:
        print(f"Dropped links: {len(prepared.dropped_links)}")
    print("Top countries:")
    for country, count, _ in prepared.legend_entries():
        print(f"  {country}: {count}")
    print(f"Most connected (top {args.top}):")
    ranked = sorted(prepared.nodes, key=lambda n: (-n.degree, n.id))[:args.top]
    for n in ranked:
        print(f"  {n.id} ({n.country}): {n.degree}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='collab-graph')
    p.add_argument('--log-dir', help='Directory for the rotating log file')
    sub = p.add_subparsers(dest='command', required=True)

    r = sub.add_parser('render', help='Generate the interactive network HTML page')
    r.add_argument('input', nargs='?', default=CONFIG.input_file, help='Dataset JSON file')
    r.add_argument('-o', '--output', help='Output HTML file (default: dist/index.html)')
    r.add_argument('--prelayout', type=int, default=CONFIG.prelayout_ticks,
                   help='Run up to N layout ticks before writing so the page opens settled')
    r.add_argument('--title', default='Author Collaboration Network')
    r.set_defaults(func=cmd_render)

    s = sub.add_parser('stats', help='Print degree and country summary of a dataset')
    s.add_argument('input', nargs='?', default=CONFIG.input_file, help='Dataset JSON file')
    s.add_argument('--top', type=int, default=10, help='How many authors to list')
    s.set_defaults(func=cmd_stats)
    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_dir)
    return args.func(args)


if __name__ == '__main__':
    raise SystemExit(main())
