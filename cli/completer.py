"""Custom completer for the drive CLI with local file autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, FILE_ARGUMENT_COMMANDS, PLAIN_FLAG


class DriveCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local path completion for upload/mkdir/add arguments
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        if command not in FILE_ARGUMENT_COMMANDS:
            return

        # first mkdir argument is the folder name
        if command == "mkdir" and len(tokens) - (0 if is_typing_new_token else 1) < 2:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        already_typed = set(tokens[1:])
        if not is_typing_new_token:
            already_typed.discard(current_word)

        if command != "add" and PLAIN_FLAG.startswith(current_word) and PLAIN_FLAG not in already_typed:
            yield Completion(PLAIN_FLAG, start_position=-len(current_word))

        yield from self._complete_paths(current_word, already_typed)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str, exclude: set) -> Iterable[Completion]:
        """
        Complete local file and directory paths relative to the working directory.

        Directories complete with a trailing '/' so the user can keep descending.
        """
        if partial.startswith('-'):
            return

        if '/' in partial:
            base, prefix = partial.rsplit('/', 1)
            directory = Path(base or '/').expanduser()
            lead = f"{base}/"
        else:
            directory = Path.cwd()
            prefix = partial
            lead = ""

        if not directory.is_dir():
            return

        for item in sorted(directory.iterdir()):
            if item.name.startswith('.') and not prefix.startswith('.'):
                continue
            if not item.name.startswith(prefix):
                continue
            candidate = f"{lead}{item.name}"
            if item.is_dir():
                yield Completion(f"{candidate}/", start_position=-len(partial))
            elif candidate not in exclude:
                yield Completion(candidate, start_position=-len(partial))
