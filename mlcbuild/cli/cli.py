# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
import signal
import sys
from importlib import import_module
from pathlib import Path

import click

from .constants import CLI_NAME, DEFAULT_LOG_LEVEL, LOG_LEVELS, ExitCode
from .context import ApplicationContext
from .utils import console

logger = logging.getLogger(__name__)


def _version_callback(ctx, param, value):
    if not value:
        return
    from mlcbuild import __version__
    console.print(f"[bold]{CLI_NAME}[/bold], version {__version__}")
    ctx.exit()


class LazyGroup(click.Group):
    """Group whose subcommand modules are imported on first lookup.

    ``lazy_commands`` maps a name to ``(module, attribute)``; listing keeps that
    order so ``--help`` reads in pipeline order.
    """

    def __init__(self, *args, lazy_commands=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.lazy_commands = dict(lazy_commands or {})

    def list_commands(self, ctx):
        extra = [name for name in super().list_commands(ctx) if name not in self.lazy_commands]
        return list(self.lazy_commands) + extra

    def get_command(self, ctx, name):
        target = self.lazy_commands.get(name)
        if target is None:
            return super().get_command(ctx, name)

        module_path, attr_name = target
        return getattr(import_module(module_path), attr_name)


def create_cli() -> click.Group:
    from mlcbuild.cli.commands import COMMAND_MAP

    @click.pass_context
    def callback(
        ctx: click.Context,
        config: Path | None,
        log_level: str,
        no_progress: bool
    ) -> None:
        ctx.obj = ApplicationContext.from_cli_args(
            config_file=config,
            log_level=log_level,
            no_progress=no_progress,
        )

    cli = LazyGroup(
        name=CLI_NAME,
        callback=callback,
        context_settings={"help_option_names": ["-h", "--help"]},
        lazy_commands=dict(COMMAND_MAP)
    )

    cli.params.append(click.Option(
        ["-c", "--config"],
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Project configuration file (default: nearest mlcbuild.yaml)"
    ))
    cli.params.append(click.Option(
        ["-l", "--log-level"],
        type=click.Choice(list(LOG_LEVELS)),
        default=DEFAULT_LOG_LEVEL,
        metavar="LEVEL",
        help="Set log verbosity (quiet|normal|verbose|debug)"
    ))
    cli.params.append(click.Option(
        ["--no-progress"],
        is_flag=True,
        help="Disable progress spinners"
    ))
    cli.params.append(click.Option(
        ["--version"],
        is_flag=True,
        expose_value=False,
        is_eager=True,
        callback=_version_callback,
        help="Show the version and exit."
    ))

    cli.help = """mlcbuild - Build the MLC LLM native library and Python package.

\b
Configuration comes from options, MLCBUILD_* environment variables
and an mlcbuild.yaml project file. Use 'plan' to preview a build."""

    return cli


def _terminate_on_sigterm(signum, frame):
    # Unwinds like Ctrl-C so running child process trees are cleaned up
    raise SystemExit(128 + signum)


def _run_cli() -> None:
    """Run CLI with consistent error handling."""
    from mlcbuild.pipeline.errors import MLCBuildError
    from .messages import UNEXPECTED_ERROR_HINT

    signal.signal(signal.SIGTERM, _terminate_on_sigterm)

    try:
        cli = create_cli()
        # Non-standalone so structured errors reach the handlers below
        cli(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except (KeyboardInterrupt, click.exceptions.Abort):
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(ExitCode.INTERRUPTED)
    except MLCBuildError as e:
        # Structured errors - format nicely
        console.print(e.format_for_console())
        sys.exit(e.exit_code)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {e}")
        console.print(f"[dim]{UNEXPECTED_ERROR_HINT}[/dim]")
        logger.exception("Unexpected error in %s CLI", CLI_NAME)
        sys.exit(ExitCode.SOFTWARE)


def main() -> None:
    _run_cli()


if __name__ == "__main__":
    main()
