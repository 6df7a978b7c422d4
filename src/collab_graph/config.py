"""Central configuration for collab-graph.

Avoids global constants scattered across modules. Import from this module.
"""

from dataclasses import dataclass, field
import os


@dataclass(frozen=True)
class CanvasConfig:
    width: int = int(os.getenv('CANVAS_WIDTH', '1600'))
    height: int = int(os.getenv('CANVAS_HEIGHT', '1000'))
    min_zoom: float = 0.2
    max_zoom: float = 10.0
    fit_padding: float = 100.0
    fit_max_scale: float = 1.8
    fit_delay: float = 0.5  # seconds after the first settle
    fit_duration: float = 1.2


@dataclass(frozen=True)
class PhysicsConfig:
    charge_strength: float = float(os.getenv('CHARGE_STRENGTH', '-180'))
    collision_multiplier: float = float(os.getenv('COLLISION_MULTIPLIER', '2.8'))
    link_strength: float = float(os.getenv('LINK_STRENGTH', '0.5'))
    link_distance: float = 50.0
    collision_margin: float = 5.0
    position_strength: float = 0.05
    slider_alpha: float = 0.4
    drag_alpha_target: float = 0.3


@dataclass(frozen=True)
class AppConfig:
    input_file: str = os.getenv('INPUT_FILE', 'data/network.json')
    output_html: str = os.getenv('OUTPUT_HTML_FILE', 'dist/index.html')
    log_dir: str = os.getenv('LOG_DIR', 'logs')
    prelayout_ticks: int = int(os.getenv('PRELAYOUT_TICKS', '0'))
    canvas: CanvasConfig = field(default_factory=CanvasConfig)
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)


CONFIG = AppConfig()
