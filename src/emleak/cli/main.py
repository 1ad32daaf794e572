"""Command-line interface for the leakage simulator.

Usage:
    emleak simulate config.json --steps=100
    emleak verify config.json
    emleak presets
    emleak run-preset tutorial
"""

from __future__ import annotations

import logging
import sys

import click

from emleak.core.errors import ConfigurationError


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """emleak — FDTD electromagnetic leakage simulator."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _echo_summary(summary: dict) -> None:
    click.echo("\n--- Simulation Summary ---")
    for key, val in summary.items():
        if isinstance(val, float):
            click.echo(f"  {key}: {val:.6e}")
        else:
            click.echo(f"  {key}: {val}")


def _run(config, steps: int | None, restart: str | None = None) -> None:
    from emleak.engine import SimulationController

    try:
        controller = SimulationController(config)
        if restart:
            click.echo(f"Restarting from checkpoint: {restart}")
            controller.load_from_checkpoint(restart)
        result = controller.run(steps)
    except ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    _echo_summary(result.summary())


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--steps", type=int, default=None, help="Timesteps per pass (default: config steps).")
@click.option("--threshold", type=float, default=None, help="Override leakage threshold.")
@click.option("--workers", type=int, default=None, help="Threads for slab-parallel updates.")
@click.option("--output", "-o", type=str, default=None, help="Write HDF5 run output to this file.")
@click.option("--restart", type=click.Path(exists=True), default=None, help="Restart from checkpoint.")
@click.option("--checkpoint-interval", type=int, default=0, help="Auto-checkpoint every N steps (0=off).")
def simulate(
    config_file: str,
    steps: int | None,
    threshold: float | None,
    workers: int | None,
    output: str | None,
    restart: str | None,
    checkpoint_interval: int,
) -> None:
    """Run a leakage simulation from a configuration file."""
    from emleak.config import SimulationConfig, load_config

    click.echo(f"Loading config from {config_file}")
    try:
        config = SimulationConfig.from_file(config_file)
        overrides = config.model_dump()
        if threshold is not None:
            overrides["leakage_threshold"] = threshold
        if workers is not None:
            overrides["workers"] = workers
        if output:
            overrides["diagnostics"]["output_filename"] = output
        if checkpoint_interval > 0:
            overrides["diagnostics"]["checkpoint_interval"] = checkpoint_interval
        config = load_config(overrides)
    except ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    _run(config, steps, restart)


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
def verify(config_file: str) -> None:
    """Verify a configuration file is valid."""
    from emleak.config import SimulationConfig

    try:
        config = SimulationConfig.from_file(config_file)
    except ValueError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    click.echo("Configuration is valid:")
    click.echo(f"  Grid: {config.grid_size}^3")
    click.echo(f"  dt: {config.dt:.2e} s, dx: {config.dx:.2e} m")
    click.echo(f"  Steps: {config.steps}")
    click.echo(f"  Threshold: {config.leakage_threshold:.3e}")
    if config.shielding is not None:
        sc = config.shielding
        click.echo(f"  Shielding: origin={sc.origin}, thickness={sc.thickness}, damping={sc.damping}")
    else:
        click.echo("  Shielding: none")


@cli.command()
def presets() -> None:
    """List the named configuration presets."""
    from emleak.presets import list_presets

    for info in list_presets():
        click.echo(f"  {info['name']:<14} {info['description']}")


@cli.command("run-preset")
@click.argument("name")
@click.option("--steps", type=int, default=None, help="Timesteps per pass (default: preset steps).")
def run_preset(name: str, steps: int | None) -> None:
    """Run a named preset."""
    from emleak.presets import get_preset

    try:
        config = get_preset(name)
    except KeyError as exc:
        click.echo(str(exc.args[0]), err=True)
        sys.exit(1)

    _run(config, steps)


if __name__ == "__main__":
    cli()
