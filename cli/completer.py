"""Custom completer for the panupload CLI with local path autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, LOCAL_PATH_COMMANDS


class PanCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local path completion for the source argument of hash/upload/upload-dir
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        """
        Generate completions based on cursor position and context.

        For the first token, completes command names.
        For the second token of a local-path command, completes files and folders.
        """
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        if command not in LOCAL_PATH_COMMANDS:
            return

        argument_position = len(tokens) if is_typing_new_token else len(tokens) - 1
        if argument_position != 1:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_local_paths(current_word, dirs_only=command == "upload-dir")

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_local_paths(self, partial: str, dirs_only: bool) -> Iterable[Completion]:
        """
        Complete entries of the directory named by the partial path.

        Folders are suggested with a trailing '/' so completion can continue
        into them.
        """
        if partial.endswith("/"):
            directory, prefix = Path(partial).expanduser(), ""
        else:
            directory, prefix = Path(partial).expanduser().parent, Path(partial).name

        if not directory.is_dir():
            return

        typed_dir = partial[: len(partial) - len(prefix)]
        try:
            items = sorted(directory.iterdir(), key=lambda p: p.name.lower())
        except OSError:
            return

        for item in items:
            if item.name.startswith(".") and not prefix.startswith("."):
                continue
            if not item.name.startswith(prefix):
                continue
            if item.is_dir():
                yield Completion(f"{typed_dir}{item.name}/", start_position=-len(partial))
            elif not dirs_only:
                yield Completion(f"{typed_dir}{item.name}", start_position=-len(partial))
