"""CLI entry point."""

import os
import shlex
import sys

from common.logging_config import setup_logging
from cli.commands import close_client, dispatch_command
from cli.parser import ParseError, parse_command
from cli.repl import repl_loop


def run_once(args: list[str]) -> int:
    """
    Run a single command given on the command line (e.g. `panupload upload a.txt /docs`).

    Returns:
        Process exit code
    """
    try:
        result = dispatch_command(parse_command(shlex.join(args)))
    except ParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    print(result)
    return 1 if result.startswith(("Error", "Unexpected error")) else 0


def main() -> None:
    """Entry point for CLI: REPL without arguments, one-shot command otherwise."""
    debug = '--debug' in sys.argv
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)

    args = [arg for arg in sys.argv[1:] if arg != '--debug']
    if debug:
        logger.info("Debug logging enabled")

    logger.info("CLI starting...")
    exit_code = 0
    try:
        if args:
            exit_code = run_once(args)
        else:
            repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        close_client()
        logger.info("CLI exiting")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
