"""Main entry point for the range-sensor layer simulation.

Usage (from project root):
    python -m src.range_layer.run --config configs/small.yaml
    python src/range_layer/run.py --config configs/default.yaml

This script is a thin CLI wrapper.  All simulation logic lives in
src/range_layer/simulation/runner.py.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure the project root is on sys.path when invoked as a script.
_PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import matplotlib
matplotlib.use("Agg")  # headless backend
import matplotlib.pyplot as plt
import numpy as np

from src.range_layer.experiment.config import ConfigError, load_config
from src.range_layer.fusion.bayes import FREE_SPACE, LETHAL_OBSTACLE
from src.range_layer.simulation.runner import SimulationResult, run_simulation


def _save_map_plot(
    output_path: Path,
    result: SimulationResult,
    resolution: float,
    origin: tuple[float, float],
) -> None:
    """Save ground truth / probability grid / merged shared map side by side."""
    fig, axes = plt.subplots(1, 3, figsize=(15, 5))
    size_y, size_x = result.ground_truth.shape
    extent = (
        origin[0], origin[0] + size_x * resolution,
        origin[1], origin[1] + size_y * resolution,
    )

    ax_gt = axes[0]
    ax_gt.imshow(result.ground_truth, cmap="gray_r", vmin=0, vmax=1, origin="lower", extent=extent)
    ax_gt.set_title("Ground Truth")

    ax_prob = axes[1]
    im = ax_prob.imshow(
        result.probabilities, cmap="gray_r", vmin=0, vmax=1, origin="lower", extent=extent
    )
    ax_prob.set_title("P(occupied)")
    fig.colorbar(im, ax=ax_prob, label="P(occupied)")

    # Shared map: unknown = 0.5 grey, free = 0, obstacle = 1
    shared = np.full(result.shared_map.shape, 0.5, dtype=np.float32)
    shared[result.shared_map == FREE_SPACE] = 0.0
    shared[result.shared_map == LETHAL_OBSTACLE] = 1.0
    ax_shared = axes[2]
    ax_shared.imshow(shared, cmap="gray_r", vmin=0, vmax=1, origin="lower", extent=extent)
    ax_shared.set_title("Shared obstacle map")

    xs = [p.x for p in result.trajectory]
    ys = [p.y for p in result.trajectory]
    for ax in axes:
        ax.plot(xs, ys, color="tab:blue", linewidth=0.8, alpha=0.6)
        ax.set_xlabel("x (m)")
        ax.set_ylabel("y (m)")

    fig.tight_layout()
    fig.savefig(output_path, dpi=120)
    plt.close(fig)


def main() -> int:
    """Run the layer simulation and write logs, summary and plot."""
    parser = argparse.ArgumentParser(description="Range-sensor occupancy layer simulation")
    parser.add_argument("--config", required=True, help="Path to YAML config file")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override logging.level from the config",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    level = args.log_level or str(config["logging"]["level"]).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    exp_cfg = config["experiment"]
    grid_cfg = config["grid"]
    output_dir = Path(exp_cfg["output_dir"])
    resolution = float(grid_cfg["resolution"])
    origin = (float(grid_cfg["origin_x"]), float(grid_cfg["origin_y"]))

    print("Range-sensor layer simulation")
    print(f"  Config     : {args.config}")
    print(f"  Grid       : {grid_cfg['size_x']} x {grid_cfg['size_y']} @ {resolution}m/cell")
    print(f"  Cycles     : {exp_cfg['cycles']}")
    print(f"  Sonars     : {config['simulation']['sonars']}")
    print(f"  Sensor type: {config['layer']['input_sensor_type']}")
    print(f"  Output     : {output_dir}")

    result = run_simulation(config, output_dir)

    plot_path = output_dir / "comparison.png"
    _save_map_plot(plot_path, result, resolution, origin)

    print("\nResults:")
    for name, value in result.metrics.items():
        if isinstance(value, float) and value == value:
            print(f"  {name:<18}: {value:.4f}")
        else:
            print(f"  {name:<18}: N/A")

    print(f"\n  Cycle log   : {output_dir / 'cycles.jsonl'}")
    print(f"  Summary JSON: {output_dir / 'summary.json'}")
    print(f"  Map plot    : {plot_path}")
    print("\nDone.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
