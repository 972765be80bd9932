"""Command line entry point: `debgopath build` and the `config` commands."""

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console

from debgopath.cli.output import format_build_summary, machine_output, user_output
from debgopath.core.config import (
    GopathConfig,
    config_to_toml,
    default_config_path,
    load_config,
    save_default_config,
)
from debgopath.core.context import GopathContext, close_context, create_context
from debgopath.core.errors import GopathError
from debgopath.core.orchestrator import WorkspaceBuilder

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class CliState:
    """Loaded configuration plus the factory turning it into a GopathContext.

    Tests pass their own CliState as the click context object to inject fakes.
    """

    config: GopathConfig
    context_factory: Callable[[GopathConfig], GopathContext] = create_context


def fail(message: str) -> NoReturn:
    """Print a styled error to stderr and exit with status 1."""
    user_output(click.style("Error: ", fg="red") + message)
    raise SystemExit(1)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    if not verbose:
        # One line per download otherwise.
        logging.getLogger("httpx").setLevel(logging.WARNING)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="debgopath")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Configuration file (default: $DEBGOPATH_CONFIG or ~/.config/debgopath/config.toml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(click_ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Construct a Go workspace src directory from the Debian archive."""
    _configure_logging(verbose)
    # Only load configuration if not already provided (e.g., by tests)
    if click_ctx.obj is None:
        try:
            click_ctx.obj = CliState(config=load_config(config_path))
        except GopathError as e:
            fail(str(e))


@cli.command("build")
@click.option("--mirror", default=None, help="HTTP URL of the Debian mirror to use.")
@click.option("--release", default=None, help="Release to build from (default: unstable).")
@click.option(
    "--target-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory receiving src-<timestamp> snapshots (default: current directory).",
)
@click.option(
    "--parallel",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of packages assembled concurrently (default: 20).",
)
@click.option(
    "--keyring",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    default=None,
    help="Keyring used to verify the release signature with gpgv.",
)
@click.option("-q", "--quiet", is_flag=True, help="Do not print the summary to stderr.")
@click.pass_obj
def build_cmd(
    state: CliState,
    mirror: str | None,
    release: str | None,
    target_dir: Path | None,
    parallel: int | None,
    keyring: Path | None,
    quiet: bool,
) -> None:
    """Build a workspace snapshot and print its timestamp.

    When a snapshot for the release's last-modified timestamp already exists,
    nothing is done and its timestamp is printed, so this can run from a
    minutely cronjob:

    \b
        latest=$(debgopath build)
        ln -snf src-${latest} new_src && mv -T new_src src
    """
    try:
        config = state.config.with_overrides(
            mirror=mirror,
            release=release,
            target_dir=target_dir,
            parallel=parallel,
            keyring=keyring,
        )
        ctx = state.context_factory(config)
        try:
            outcome = WorkspaceBuilder(ctx).build()
        finally:
            close_context(ctx)
    except GopathError as e:
        fail(str(e))

    if not quiet:
        Console(stderr=True).print(format_build_summary(outcome))
    machine_output(outcome.timestamp)


@cli.group("config")
def config_group() -> None:
    """Inspect and create configuration files."""


@config_group.command("show")
@click.pass_obj
def config_show_cmd(state: CliState) -> None:
    """Print the effective configuration as TOML."""
    machine_output(config_to_toml(state.config), nl=False)


@config_group.command("init")
@click.argument("path", type=click.Path(path_type=Path, dir_okay=False), required=False)
@click.option("-f", "--force", is_flag=True, help="Overwrite an existing file.")
def config_init_cmd(path: Path | None, force: bool) -> None:
    """Write the default configuration to PATH (default: the user config file)."""
    path = path or default_config_path()
    try:
        save_default_config(path, force=force)
    except GopathError as e:
        fail(str(e))
    user_output(f"Wrote {path}")


def main() -> None:
    """CLI entry point used by the `debgopath` console script."""
    cli()
