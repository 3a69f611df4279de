import argparse
import logging
import sys
from typing import List, Optional

from rich.console import Console

from . import __version__, ui
from .config import PROVIDERS, get_config, resolve_provider
from .errors import ConfigError
from .executor import CommandExecutor
from .logger import setup_logging
from .providers import create_provider
from .session import Session

logger = logging.getLogger(__name__)

USAGE = 'Usage: aicmd [--provider <anthropic|openai|ollama>] [--model MODEL] "your command description"'


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="aicmd",
        description="Translate a natural-language request into a shell command, run it, and fix it when it fails.",
        epilog="Provider credentials are read from the environment: "
               + ", ".join(spec.credential_env or spec.endpoint_env for spec in PROVIDERS) + ".",
    )
    parser.add_argument(
        "--provider",
        help="AI provider to use (" + ", ".join(spec.kind.value for spec in PROVIDERS) + ")",
    )
    parser.add_argument("--model", help="Model to use (provider-specific)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable informational logging")
    parser.add_argument("--init-config", action="store_true", help="Write a default config file and exit")
    parser.add_argument("--version", action="version", version=f"aicmd {__version__}")
    parser.add_argument("request", nargs="*", help="What you want the command to do")
    return parser


def run_cli(argv: Optional[List[str]] = None, console: Optional[Console] = None) -> int:
    """Parses arguments, resolves the provider and runs the session. Returns the exit code."""
    console = console or ui.console
    args = create_parser().parse_args(argv)

    config = get_config()
    if args.verbose:
        config.verbose = True
    setup_logging(config)

    if args.init_config:
        path = config.write_default()
        ui.display_success(console, f"Created default config file at: {path}")
        return 0

    if not args.request:
        console.print(USAGE, markup=False)
        return 1

    try:
        provider_config = resolve_provider(args.provider, args.model, config.provider_env())
    except ConfigError as e:
        logger.info(f"Provider configuration failed: {e}")
        ui.display_error(console, f"Error: {e}")
        return 1

    ui.display_provider(console, provider_config)
    provider = create_provider(provider_config, max_tokens=config.max_tokens)
    executor = CommandExecutor(shell=config.shell)
    session = Session(provider, executor, console, config)
    return session.run(" ".join(args.request))


def main(argv: Optional[List[str]] = None) -> None:
    """Console entry point: runs the CLI and turns its outcome into the process exit code."""
    try:
        exit_code = run_cli(argv)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        ui.console.print()
        ui.display_notice(ui.console, "Cancelled.")
        exit_code = 130
    except Exception as e:
        logger.info("Unhandled exception", exc_info=True)
        ui.display_error(ui.console, f"Unexpected error: {e}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
