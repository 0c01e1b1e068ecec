"""Command-line interface for the Xerxes particle-field simulator.

Usage:
    xerxes simulate config.json --steps=10 --workers=4
    xerxes verify config.json
    xerxes init-config two_body -o two_body.json
"""

from __future__ import annotations

import logging
import sys

import click


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Xerxes: periodic particle-field simulator."""
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


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--steps", type=click.IntRange(min=1), default=None, help="Max steps (default: run to n_steps).")
@click.option("--workers", "-w", type=click.IntRange(min=1), default=None, help="Worker processes (overrides config).")
@click.option("--output", "-o", type=str, default=None, help="Override output HDF5 filename.")
@click.option("--restart", type=click.Path(exists=True), default=None, help="Restart from checkpoint.")
@click.option("--checkpoint-interval", type=click.IntRange(min=0), default=0, help="Auto-checkpoint every N steps (0=off).")
def simulate(
    config_file: str,
    steps: int | None,
    workers: int | None,
    output: str | None,
    restart: str | None,
    checkpoint_interval: int,
) -> None:
    """Run a particle-field simulation from a configuration file."""
    from xerxes.config import SimulationConfig
    from xerxes.errors import XerxesError

    click.echo(f"Loading config from {config_file}")
    try:
        config = SimulationConfig.from_file(config_file)
    except ValueError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    overrides = config.model_dump()
    if workers is not None:
        overrides["parallel"]["workers"] = workers
    if output:
        overrides["diagnostics"]["hdf5_filename"] = output
    if checkpoint_interval > 0:
        overrides["diagnostics"]["checkpoint_interval"] = checkpoint_interval
    try:
        config = SimulationConfig.model_validate(overrides)
    except ValueError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    try:
        if config.parallel.workers > 1:
            from xerxes.parallel import run_parallel

            click.echo(f"Workers: {config.parallel.workers}")
            summary = run_parallel(config, restart=restart, max_steps=steps)["summary"]
        else:
            from xerxes.engine import SimulationEngine

            engine = SimulationEngine(config)
            if restart:
                click.echo(f"Restarting from checkpoint: {restart}")
                engine.load_from_checkpoint(restart)
            summary = engine.run(max_steps=steps)
    except XerxesError as exc:
        click.echo(f"Simulation failed: {exc}", err=True)
        sys.exit(1)

    _echo_summary(summary)


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
def verify(config_file: str) -> None:
    """Verify a configuration file is valid."""
    from xerxes.config import SimulationConfig

    try:
        config = SimulationConfig.from_file(config_file)
        click.echo("Configuration is valid:")
        click.echo(f"  Grid: {config.grid_shape}")
        click.echo(f"  Steps: {config.n_steps}, dt: {config.dt:.2e}")
        click.echo(
            f"  Particles: {config.particles.n_particles} ({config.particles.initializer})"
        )
        click.echo(f"  Deposit: {config.deposit}, wrap: {config.wrap_mode}")
        click.echo(
            f"  Field: order={config.field.order}, threshold={config.field.threshold:.1e}"
        )
        click.echo(
            f"  Solver: precision={config.solver.precision:.1e}, "
            f"threshold={config.solver.threshold:.1e}"
        )
        click.echo(f"  Workers: {config.parallel.workers}")
    except Exception as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


@cli.command()
def presets() -> None:
    """List the named configuration presets."""
    from xerxes.presets import list_presets

    for info in list_presets():
        grid = "x".join(str(n) for n in info["grid_shape"])
        click.echo(f"  {info['name']:<15} {grid:<10} N={info['n_particles']:<6} {info['description']}")


@cli.command("init-config")
@click.argument("preset")
@click.option("--output", "-o", type=str, default="config.json", help="Output JSON file.")
def init_config(preset: str, output: str) -> None:
    """Write a named preset to a configuration file."""
    from xerxes.config import SimulationConfig
    from xerxes.presets import get_preset

    try:
        data = get_preset(preset)
    except KeyError as exc:
        click.echo(str(exc.args[0]), err=True)
        sys.exit(1)

    # Round-trip through the model so the file carries every default
    config = SimulationConfig(**data)
    config.to_json(output)
    click.echo(f"Wrote preset '{preset}' to {output}")


if __name__ == "__main__":
    cli()
