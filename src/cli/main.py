"""Main CLI entry point for the confluence-publish command.

This module provides the Typer application with the plan, publish, rename
and discover subcommands. Global options (verbosity, log directory, color)
are handled by the application callback.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from src.cli.config import DEFAULT_CONFIG_PATH
from src.cli.output import OutputHandler
from src.cli.publish_command import PublishCommand

app = typer.Typer(
    name="confluence-publish",
    help="""Publish interlinked Markdown notes to Confluence.

QUICK START:
  confluence-publish plan index.md                 # Show what would change
  confluence-publish publish index.md              # Review and publish
  confluence-publish publish index.md --dry-run    # Record decisions only
  confluence-publish rename old.md new.md          # Keep page after a rename
  confluence-publish discover                      # Detect the REST API root""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)

# Module logger
logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'src' namespace logger to avoid affecting third-party
    libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:  # verbosity >= 2
        level = logging.DEBUG

    app_logger = logging.getLogger("src")
    app_logger.setLevel(level)
    # Repeated invocations in one process (tests) must not stack handlers
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"confluence-publish_{timestamp}.log"

        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_formatter = logging.Formatter(file_format, datefmt=date_format)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _command(ctx: typer.Context) -> PublishCommand:
    options = ctx.obj or {}
    verbosity = options.get("verbosity", 0)
    _configure_logging(verbosity, options.get("logdir"))
    output = OutputHandler(verbosity=verbosity, no_color=options.get("no_color", False))
    return PublishCommand(
        config_path=options.get("config_path", DEFAULT_CONFIG_PATH),
        output_handler=output,
    )


@app.callback()
def global_options(
    ctx: typer.Context,
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    config_path: str = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        help="Path to the configuration file",
        metavar="FILE",
    ),
) -> None:
    """Publish interlinked Markdown notes to Confluence."""
    ctx.obj = {
        "verbosity": verbosity,
        "logdir": logdir,
        "no_color": no_color,
        "config_path": config_path,
    }


@app.command()
def plan(
    ctx: typer.Context,
    root: str = typer.Argument(..., help="Root note (vault path or file path)"),
    diff: bool = typer.Option(False, "--diff", help="Show unified diffs of changed notes"),
    space: Optional[str] = typer.Option(None, "--space", help="Publish to this space instead"),
    parent: Optional[str] = typer.Option(None, "--parent", help="Parent page id or URL"),
    hierarchy: Optional[str] = typer.Option(
        None,
        "--hierarchy",
        help="Hierarchy mode: flat, links, folder, frontmatter, hybrid",
    ),
) -> None:
    """Show what publishing ROOT would do, without changing anything."""
    exit_code = _command(ctx).plan(root, show_diff=diff, space=space, parent=parent, hierarchy=hierarchy)
    raise typer.Exit(exit_code)


@app.command()
def publish(
    ctx: typer.Context,
    root: str = typer.Argument(..., help="Root note (vault path or file path)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "--dryrun",
        help="Record pass 1 decisions without writing anything",
    ),
    skip: Optional[List[str]] = typer.Option(
        None,
        "--skip",
        help="Deselect a note (can be used multiple times)",
        metavar="PATH",
    ),
    override: Optional[List[str]] = typer.Option(
        None,
        "--override",
        help="Replace a note's action, e.g. notes/a.md=create (can be used multiple times)",
        metavar="PATH=ACTION",
    ),
    no_labels: Optional[List[str]] = typer.Option(
        None,
        "--no-labels",
        help="Leave a note's labels untouched (can be used multiple times)",
        metavar="PATH",
    ),
    space: Optional[str] = typer.Option(None, "--space", help="Publish to this space instead"),
    parent: Optional[str] = typer.Option(None, "--parent", help="Parent page id or URL"),
    hierarchy: Optional[str] = typer.Option(
        None,
        "--hierarchy",
        help="Hierarchy mode: flat, links, folder, frontmatter, hybrid",
    ),
) -> None:
    """Plan, review and publish ROOT and its export set."""
    exit_code = _command(ctx).publish(
        root,
        yes=yes,
        dry_run=dry_run,
        skip=skip or [],
        overrides=override or [],
        no_labels=no_labels or [],
        confirm=lambda message: typer.confirm(message, default=False),
        space=space,
        parent=parent,
        hierarchy=hierarchy,
    )
    raise typer.Exit(exit_code)


@app.command()
def rename(
    ctx: typer.Context,
    old_path: str = typer.Argument(..., help="Previous vault path of the note"),
    new_path: str = typer.Argument(..., help="New vault path of the note"),
) -> None:
    """Keep a renamed note publishing to its existing page."""
    raise typer.Exit(_command(ctx).rename(old_path, new_path))


@app.command()
def discover(ctx: typer.Context) -> None:
    """Detect the Confluence REST API root from the environment settings."""
    raise typer.Exit(_command(ctx).discover())


def main() -> None:
    """Main entry point for the CLI application.

    This function is called when the module is executed directly or
    when the console script is invoked.
    """
    app()


# Allow running as: python -m src.cli.main
if __name__ == "__main__":
    main()
