#!/usr/bin/env python3
"""Replay a synthetic pointer path through the density engine.

Runs headless on a synthetic clock and reports how the field evolved:
final density statistics, subdivision level histogram and frame timing.

Usage:
    # Default config, sweeping pointer, 6 s with 2.5 s of painting
    python scripts/simulate.py

    # Stationary pointer, keep painting, write artifacts
    python scripts/simulate.py --path hold --paint-seconds -1 --output outputs/replay_hold

    # Custom config and viewport
    python scripts/simulate.py --config configs/engine_v1.yaml --viewport 1280 720 --path circle

    # Distance-only levels around the final pointer position
    python scripts/simulate.py --path hold --paint-seconds -1 --level-mode distance --falloff exponential

Outputs (with --output):
    - summary.yaml: run parameters, final field statistics, frame timing
    - heatmap.png:  final density as a heat map
"""
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.density_simulator.replay import LEVEL_MODES, PATHS, run_replay
from src.density_simulator.subdivision import FALLOFFS
from src.utils import validators
from src.utils.logging_config import setup_logging

DEFAULT_CONFIG = Path("configs/engine_v1.yaml")


def main() -> int:
    """CLI entrypoint for headless replay."""
    parser = argparse.ArgumentParser(
        description="Replay a synthetic pointer path through the density engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Engine config YAML (default: {DEFAULT_CONFIG}; built-in defaults if missing)",
    )
    parser.add_argument(
        "--path",
        choices=PATHS,
        default="sweep",
        help="Synthetic pointer path",
    )
    parser.add_argument(
        "--viewport",
        type=float,
        nargs=2,
        metavar=("W", "H"),
        default=(800.0, 600.0),
        help="Grid area in px",
    )
    parser.add_argument("--duration", type=float, default=6.0, help="Simulated seconds")
    parser.add_argument(
        "--paint-seconds",
        type=float,
        default=2.5,
        help="Pointer leaves after this many seconds (negative: never leaves)",
    )
    parser.add_argument("--fps", type=float, default=None, help="Override frame rate")
    parser.add_argument("--sample-hz", type=float, default=120.0, help="Pointer sample rate")
    parser.add_argument("--speed", type=float, default=600.0, help="Pointer speed (px/s)")
    parser.add_argument(
        "--level-mode",
        choices=LEVEL_MODES,
        default="density",
        help="Derive levels from accumulated density or from pointer distance",
    )
    parser.add_argument("--falloff", choices=FALLOFFS, default="linear", help="Distance-mode falloff")
    parser.add_argument("--output", type=Path, default=None, help="Artifact directory")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--json-logs", action="store_true", help="JSON log lines")

    args = parser.parse_args()

    setup_logging(log_level=args.log_level, json=args.json_logs, context={"app": "simulate"})

    if args.config.exists():
        config = validators.load_engine_config(args.config)
    else:
        config = validators.EngineConfigV1()

    summary = run_replay(
        config=config,
        viewport=tuple(args.viewport),
        path=args.path,
        duration=args.duration,
        paint_seconds=None if args.paint_seconds < 0 else args.paint_seconds,
        fps=args.fps,
        sample_hz=args.sample_hz,
        speed=args.speed,
        output_dir=args.output,
        level_mode=args.level_mode,
        falloff=args.falloff,
    )

    field = summary['field']
    print("\n=== Replay Complete ===")
    print(f"Frames: {summary['frames']}")
    print(f"Grid: {field['columns']}x{field['rows']} base cells")
    print(f"Max density: {field['max_density']:.3f}  mean: {field['mean_density']:.3f}")
    print(f"Level mode: {summary['level_mode']}")
    print(f"Level histogram: {field['level_histogram']}")
    if summary['pointer_cell'] is not None:
        print(f"Pointer cell: {summary['pointer_cell']}")
    if 'artifacts' in summary:
        print(f"Summary: {summary['artifacts']['summary']}")
        print(f"Heatmap: {summary['artifacts']['heatmap']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
