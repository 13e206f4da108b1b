"""crateyard CLI — manage a static crate registry."""

from __future__ import annotations

import logging
from typing import Callable, NoReturn, TypeVar

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from crateyard import __version__
from crateyard.errors import RegistryError
from crateyard.registry.config import ConfigV1, HtmlConfig

console = Console()

T = TypeVar("T")


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )


def _fail(error: RegistryError) -> NoReturn:
    """Print the error and its causes, then exit with status 1."""
    console.print(f"[red]Error:[/] {escape(str(error))}")
    cause = error.__cause__
    while cause is not None:
        console.print(f"  [dim]caused by:[/] {escape(str(cause))}")
        cause = cause.__cause__
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--quiet", "-q", is_flag=True, help="Only show warnings and errors")
def main(verbose: bool, quiet: bool):
    """crateyard — manage a static crate registry.

    The registry is a plain directory; serve it with any HTTP file server
    and point cargo at it as a sparse registry.
    """
    _configure_logging(verbose, quiet)


# ── Init ─────────────────────────────────────────────────────────────


def _value_or_prompt(value: T | None, use_default: bool, default: T | None, ask: Callable[[], T]) -> T:
    if value is None and use_default and default is not None:
        value = default
    if value is None:
        value = ask()
    return value


def collect_init_config(
    base_url: str | None,
    defaults: bool,
    auth_required: bool | None,
    html: bool | None,
    html_suggested_registry_name: str | None,
) -> ConfigV1:
    """Turn command-line values into a config, prompting for what is missing."""
    base_url = _value_or_prompt(
        base_url,
        defaults,
        None,
        lambda: click.prompt("What URL will the registry be served from"),
    )
    auth_required = _value_or_prompt(
        auth_required,
        defaults,
        ConfigV1.USER_DEFAULT_AUTH_REQUIRED,
        lambda: click.confirm(
            "Require HTTP authentication to access crates?",
            default=ConfigV1.USER_DEFAULT_AUTH_REQUIRED,
        ),
    )
    enabled = _value_or_prompt(
        html,
        defaults,
        HtmlConfig.USER_DEFAULT_ENABLED,
        lambda: click.confirm(
            "Enable HTML index generation?", default=HtmlConfig.USER_DEFAULT_ENABLED
        ),
    )

    suggested_registry_name = None
    if enabled:
        suggested_registry_name = _value_or_prompt(
            html_suggested_registry_name,
            defaults,
            HtmlConfig.USER_DEFAULT_SUGGESTED_REGISTRY_NAME,
            lambda: click.prompt(
                "Name you'd like to suggest other people call your registry",
                default=HtmlConfig.USER_DEFAULT_SUGGESTED_REGISTRY_NAME,
            ),
        )

    return ConfigV1(
        base_url=base_url,
        auth_required=auth_required,
        html=HtmlConfig(enabled=enabled, suggested_registry_name=suggested_registry_name),
    )


@main.command()
@click.argument("path", type=click.Path(file_okay=False))
@click.option("--base-url", default=None, help="The URL that the registry is hosted at")
@click.option("--defaults", is_flag=True, help="Use default values instead of prompting")
@click.option(
    "--auth-required/--no-auth-required",
    default=None,
    help="Require HTTP authentication to access crates",
)
@click.option("--html/--no-html", default=None, help="Enable the HTML index page")
@click.option(
    "--html-suggested-registry-name",
    default=None,
    help="Name you'd like to suggest other people call your registry",
)
def init(
    path: str,
    base_url: str | None,
    defaults: bool,
    auth_required: bool | None,
    html: bool | None,
    html_suggested_registry_name: str | None,
):
    """Initialize a new registry in PATH."""
    from crateyard.registry.local_registry import Registry

    config = collect_init_config(
        base_url, defaults, auth_required, html, html_suggested_registry_name
    )
    try:
        reg = Registry.initialize(config, path)
    except RegistryError as e:
        _fail(e)

    console.print(f"[green]Registry initialized[/] at {reg.path} for {reg.config.base_url}")


# ── Publishing ───────────────────────────────────────────────────────

_registry_option = click.option(
    "--registry", "-r", "registry_dir", required=True, help="Path to the registry to modify"
)


@main.command()
@_registry_option
@click.argument("crate_files", nargs=-1, required=True, type=click.Path(dir_okay=False))
def add(registry_dir: str, crate_files: tuple[str, ...]):
    """Add one or more .crate packages to the registry."""
    from crateyard.registry.local_registry import Registry

    try:
        reg = Registry.open(registry_dir)
        for crate_file in crate_files:
            entry = reg.add_file(crate_file)
            console.print(f"  Added: [cyan]{entry.qualified_id}[/]")
    except RegistryError as e:
        _fail(e)


@main.command()
@_registry_option
@click.argument("name")
@click.argument("version")
def yank(registry_dir: str, name: str, version: str):
    """Mark VERSION of crate NAME as yanked."""
    from crateyard.registry.local_registry import Registry

    try:
        entry = Registry.open(registry_dir).yank(name, version)
    except RegistryError as e:
        _fail(e)
    console.print(f"  Yanked: [cyan]{entry.qualified_id}[/]")


@main.command()
@_registry_option
@click.argument("name")
@click.argument("version")
def unyank(registry_dir: str, name: str, version: str):
    """Clear the yanked flag of VERSION of crate NAME."""
    from crateyard.registry.local_registry import Registry

    try:
        entry = Registry.open(registry_dir).unyank(name, version)
    except RegistryError as e:
        _fail(e)
    console.print(f"  Unyanked: [cyan]{entry.qualified_id}[/]")


@main.command()
@_registry_option
@click.argument("name")
@click.argument("version")
def remove(registry_dir: str, name: str, version: str):
    """Remove VERSION of crate NAME from the index.

    The .crate file is kept on disk.
    """
    from crateyard.registry.local_registry import Registry

    try:
        entry = Registry.open(registry_dir).remove(name, version)
    except RegistryError as e:
        _fail(e)
    console.print(f"  Removed: [cyan]{entry.qualified_id}[/]")


# ── List ─────────────────────────────────────────────────────────────


@main.command(name="list")
@_registry_option
def list_crates(registry_dir: str):
    """List every crate version in the registry."""
    from crateyard.registry.local_registry import Registry

    try:
        crates = Registry.open(registry_dir).list_all()
    except RegistryError as e:
        _fail(e)

    if not any(crates.values()):
        console.print("[yellow]Registry is empty.[/]")
        return

    count = sum(len(index) for index in crates.values())
    table = Table(title=f"Registry ({len(crates)} crates, {count} versions)")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("Yanked", justify="center")
    table.add_column("Checksum", style="dim")

    for name, index in crates.items():
        for vers, entry in sorted(index.items()):
            yanked = "[red]Y[/]" if entry.yanked else "[green]N[/]"
            table.add_row(name, vers, yanked, entry.cksum[:16])

    console.print(table)


if __name__ == "__main__":
    main()
