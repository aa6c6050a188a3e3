"""REPL with prompt_toolkit for user interaction."""

import os
import sys
from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from cli.commands import dispatch_command, get_client
from cli.completer import PanCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.parser import ParseError, parse_command


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


def build_prompt() -> list:
    """Prompt fragments showing the remembered remote folder (e.g. 'pan:/docs> ')."""
    folder = get_client().config.get_last_folder()['path']
    return [("class:prompt", f"{PROMPT_TEXT.rstrip('> ')}:{folder}> ")]


def run_builtin(command: str) -> bool:
    """
    Run a REPL-only command.

    Returns:
        True if the command was handled here
    """
    if command == "help":
        print(HELP_TEXT)
    elif command == "clear":
        clear_screen()
        show_welcome()
    else:
        return False
    return True


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    session: PromptSession = PromptSession(
        completer=PanCompleter(), history=InMemoryHistory(), style=STYLE
    )

    clear_screen()
    show_welcome()

    while True:
        try:
            user_input = session.prompt(build_prompt()).strip()
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break

        if not user_input:
            continue
        if user_input == "exit":
            print("Goodbye!")
            break
        if run_builtin(user_input):
            continue

        try:
            print(dispatch_command(parse_command(user_input)))
        except ParseError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            print("\nInterrupted. Run the same upload again to resume from the chunks already sent.")
