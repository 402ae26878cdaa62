"""
Command-line entry point.

``bags`` with no subcommand starts the terminal UI. The ``config`` group
inspects and edits the YAML configuration without opening the encrypted
store.
"""

import json
import logging
import sys
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from .core.cli_base import ContextAwareCommand, ContextAwareGroup
from .core.config import CONFIG_KEYS, MIN_REFRESH_SECS, ConfigManager
from .core.context import AppContext, get_current_context, set_context
from .core.errors import ConfigError
from .core.logging import LoggingManager
from .data.models import CURRENCIES
from .ui.theme import THEME_NAMES

console = Console()
logger = logging.getLogger(__name__)


def _console_level(debug: bool, verbose: bool) -> str:
    if debug:
        return "DEBUG"
    return "INFO" if verbose else "WARNING"


def _config_manager() -> ConfigManager:
    return get_current_context().services['config_manager']


@click.group(cls=ContextAwareGroup, invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.pass_context
def main(ctx: click.Context, debug: bool, verbose: bool) -> None:
    """
    bags - track crypto prices, holdings and alerts from the terminal.

    Run without a subcommand to start the interactive UI.
    """
    app_ctx = AppContext(debug=debug, verbose=verbose)
    set_context(app_ctx)

    config_manager = ConfigManager()
    logging_manager = LoggingManager({
        'level': _console_level(debug, verbose),
        'console': True,
        'error_file': str(config_manager.error_log_path),
    })
    logging_manager.setup_logging()

    try:
        config = config_manager.load()
    except ConfigError as e:
        raise click.ClickException(str(e))

    app_ctx.config = config.to_dict()
    app_ctx.services['config_manager'] = config_manager
    app_ctx.services['logging_manager'] = logging_manager

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@main.command(cls=ContextAwareCommand)
@click.option('--currency', type=click.Choice(CURRENCIES, case_sensitive=False),
              help='Display currency for this session')
@click.option('--theme', type=click.Choice(THEME_NAMES), help='Colour theme for this session')
@click.option('--refresh', type=int, help='Refresh interval in seconds (minimum 30)')
def run(currency: Optional[str] = None, theme: Optional[str] = None,
        refresh: Optional[int] = None) -> None:
    """Start the interactive terminal UI."""
    from .core.controller import Controller
    from .core.state import AppState
    from .core.modes import Locked
    from .data.store import SecureStore
    from .ui.app import BagsApp

    app_ctx = get_current_context()
    config_manager = _config_manager()
    config = config_manager.config

    # The TUI owns the terminal, so logs only go to files
    logging_manager = app_ctx.services['logging_manager']
    logging_manager.config = {
        'level': 'DEBUG' if app_ctx.debug else 'INFO',
        'console': False,
        'file': str(config_manager.debug_log_path) if app_ctx.debug else None,
        'error_file': str(config_manager.error_log_path),
    }
    logging_manager.setup_logging()

    state = AppState(
        currency=(currency or config.currency).lower(),
        theme=theme or config.theme,
        refresh_interval_secs=max(MIN_REFRESH_SECS, refresh if refresh is not None else config.refresh_interval_secs),
        mode=Locked(is_new=not SecureStore.exists(config_manager.db_path)),
    )
    controller = Controller(config_manager, state=state)

    logger.info(f"Starting TUI (currency={state.currency}, theme={state.theme}, "
                f"refresh={state.refresh_interval_secs}s)")
    try:
        BagsApp(controller).run()
    finally:
        logging_manager.teardown()


@main.command(cls=ContextAwareCommand)
def version() -> None:
    """Show version information."""
    from . import __version__

    app_ctx = get_current_context()
    console.print(f"[bold]bags[/bold] v{__version__}")

    if app_ctx.verbose:
        config_manager = _config_manager()
        console.print(f"Config: {config_manager.config_file}")
        console.print(f"Store:  {config_manager.db_path}")


@main.group(cls=ContextAwareGroup, name='config')
def config_group() -> None:
    """Configuration management commands."""
    pass


@config_group.command(cls=ContextAwareCommand, name='show')
@click.option('--key', help='Show a single configuration key')
@click.option('--format', 'output_format', type=click.Choice(['yaml', 'json', 'table']),
              default='yaml', help='Output format')
def show_config(key: Optional[str] = None, output_format: str = 'yaml') -> None:
    """Show current configuration."""
    config = _config_manager().config.to_dict()

    if key:
        if key not in config:
            console.print(f"[red]Configuration key '{key}' not found[/red]")
            sys.exit(1)
        console.print(f"[bold]{key}:[/bold] {config[key]}")
        return

    if output_format == 'table':
        table = Table(title="Configuration")
        table.add_column("Key", style="cyan", no_wrap=True)
        table.add_column("Value", style="magenta")
        table.add_column("Type", style="yellow")
        for name, value in config.items():
            table.add_row(name, str(value), type(value).__name__)
        console.print(table)
    elif output_format == 'json':
        console.print(Syntax(json.dumps(config, indent=2), "json", theme="monokai", line_numbers=True))
    else:
        console.print(Syntax(yaml.safe_dump(config, default_flow_style=False, sort_keys=False),
                             "yaml", theme="monokai", line_numbers=True))


@config_group.command(cls=ContextAwareCommand, name='set')
@click.argument('key', type=click.Choice(CONFIG_KEYS))
@click.argument('value')
def set_config(key: str, value: str) -> None:
    """Set a configuration value and save it."""
    config_manager = _config_manager()

    if key == 'currency' and value.lower() not in CURRENCIES:
        raise click.BadParameter(f"expected one of {', '.join(CURRENCIES)}", param_hint='VALUE')
    if key == 'theme' and value not in THEME_NAMES:
        raise click.BadParameter(f"expected one of {', '.join(THEME_NAMES)}", param_hint='VALUE')

    try:
        config = config_manager.set(key, value)
        config_manager.save()
    except ConfigError as e:
        raise click.ClickException(str(e))

    console.print(f"[green]✓[/green] Set {key} = {getattr(config, key)}")


@config_group.command(cls=ContextAwareCommand, name='path')
def config_path() -> None:
    """Show where configuration, store and logs live."""
    config_manager = _config_manager()

    table = Table(title="Paths")
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("Location", style="magenta")
    table.add_row("config", str(config_manager.config_file))
    table.add_row("store", str(config_manager.db_path))
    table.add_row("error log", str(config_manager.error_log_path))
    table.add_row("debug log", str(config_manager.debug_log_path))
    console.print(table)


if __name__ == '__main__':
    main()
