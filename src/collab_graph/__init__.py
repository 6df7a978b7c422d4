"""collab-graph package.

This package hosts configuration, dataset loading, the interactive graph view
and page rendering for the author collaboration network.
"""

__all__ = [
    'config',
]

