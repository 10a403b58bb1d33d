# cli.py
from __future__ import annotations

import json
import shutil
import sys
from pathlib import Path

import click

from docmake.config import FLAVORS, BuildConfig, ConfigError, parse_vars
from docmake.graph import CycleError, DuplicateTargetError, UnknownTargetError
from docmake.model import UndefinedVariableError
from docmake.runner import load_targets, plan_build, run_build
from docmake.ui.console import Console, get_console, set_console

# exit status for errors found before any work starts
EXIT_PLANNING = 2
PLANNING_ERRORS = (
    UnknownTargetError,
    CycleError,
    DuplicateTargetError,
    UndefinedVariableError,
    ConfigError,
)


def discover_targets_file(config: BuildConfig) -> Path:
    """
    Locate the targets file (relative paths are taken from the build root).

    Raises:
        SystemExit: If the file does not exist
    """
    console = get_console()

    path = Path(config.targets_file)
    if not path.is_absolute():
        path = config.root / path
    if not path.exists() and path.suffix != ".py":
        path = path.with_name(path.name + ".py")
    if not path.exists():
        console.print_error(
            "Targets file not found",
            f"Could not find targets file: {path}",
            suggestion="Create docmake_targets.py or specify a different path:\n  docmake build --targets my_targets.py",
        )
        sys.exit(1)
    return path


def config_options(f):
    """Options shared by every command that binds the target table."""
    options = [
        click.option("--targets", "targets_file", default=None, help="Targets file (defaults to docmake_targets.py)"),
        click.option("--root", default=None, type=click.Path(file_okay=False), help="Build root directory"),
        click.option("--flavor", default=None, type=click.Choice(FLAVORS), help="Which documentation to build"),
        click.option("--doc-version", "version", default=None, help="Version string being documented"),
        click.option("--latest", default=None, help="Latest shipped release (stable flavor)"),
        click.option("--diffable/--no-diffable", default=None, help="Suppress timestamps so builds are byte-identical"),
        click.option("--var", "extra", multiple=True, metavar="KEY=VALUE", help="Extra substitution variable"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _make_config(**kwargs) -> BuildConfig:
    extra = parse_vars(kwargs.pop("extra", ()) or ())
    config = BuildConfig.from_env().override(**kwargs)
    if extra:
        config = config.override(extra_vars={**config.extra_vars, **extra})
    return config


def _load_graph(config: BuildConfig):
    path = discover_targets_file(config)
    table = load_targets(path, config)
    get_console().print_debug(f"Loaded {len(table)} targets and {len(table.rules)} rules from {path}")
    return path, table.bind(config.variables(), root=config.root)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show commands, tool output and stack traces)",
)
@click.option("--quiet", "-q", is_flag=True, default=False, help="Only print errors and the summary")
def cli(debug, quiet):
    """docmake: incremental build graph for the documentation site."""
    console = Console(debug=debug, quiet=quiet)
    set_console(console)


@cli.command()
@click.argument("targets", nargs=-1)
@config_options
@click.option("--jobs", "-j", default=None, type=int, help="Number of parallel workers (default 1)")
@click.option("--keep-going/--stop-on-failure", default=None, help="Keep building unrelated targets after a failure")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the build report as JSON")
@click.pass_context
def build(ctx, targets, jobs, keep_going, as_json, **options):
    """Build TARGETS (default: all)."""
    console = get_console()
    requested = list(targets) or ["all"]

    try:
        config = _make_config(jobs=jobs, keep_going=keep_going, **options)
        path, graph = _load_graph(config)

        console.print_build_started(
            targets_file=path.name,
            flavor=config.flavor,
            requested=requested,
            jobs=config.jobs,
            diffable=config.diffable,
        )

        report = run_build(
            graph,
            requested,
            jobs=config.jobs,
            keep_going=config.keep_going,
            diffable=config.diffable,
        )
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except PLANNING_ERRORS as e:
        console.print_error("Cannot start build", str(e))
        sys.exit(EXIT_PLANNING)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        console.print_report(report)

    sys.exit(report.exit_code)


@cli.command()
@click.argument("targets", nargs=-1)
@config_options
@click.pass_context
def plan(ctx, targets, **options):
    """Show what building TARGETS would rebuild, without running anything."""
    console = get_console()
    requested = list(targets) or ["all"]

    try:
        config = _make_config(**options)
        _path, graph = _load_graph(config)
        entries = plan_build(graph, requested, diffable=config.diffable)
    except PLANNING_ERRORS as e:
        console.print_error("Cannot plan build", str(e))
        sys.exit(EXIT_PLANNING)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    console.print_plan(entries)
    n = sum(1 for _, stale in entries if stale)
    console.print_info(f"{n} of {len(entries)} target(s) would rebuild")


@cli.command(name="list")
@config_options
@click.pass_context
def list_targets(ctx, **options):
    """List declared targets and pattern rules."""
    console = get_console()
    try:
        config = _make_config(**options)
        _path, graph = _load_graph(config)
    except PLANNING_ERRORS as e:
        console.print_error("Cannot load targets", str(e))
        sys.exit(EXIT_PLANNING)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    console.print_header("Targets")
    console.print_targets(sorted(graph.targets))
    if graph.rules:
        console.print_header("Pattern rules")
        console.print_targets([r.pattern for r in graph.rules])


@cli.command()
@click.option("--root", default=None, type=click.Path(file_okay=False), help="Build root directory")
@click.pass_context
def clean(ctx, root):
    """Delete generated artifacts and the output directory (forces a full rebuild)."""
    console = get_console()
    try:
        config = BuildConfig.from_env().override(root=root)
    except ConfigError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(EXIT_PLANNING)

    for d in config.derived_dirs():
        if d.exists():
            shutil.rmtree(d)
            console.print_info(f"removed {d}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
