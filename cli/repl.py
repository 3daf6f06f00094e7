"""Interactive prompt_toolkit shell for the drive."""

import os
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from cli import commands
from cli.completer import DriveCompleter
from cli.constants import HELP_TEXT, LOGO, PROMPT_TEXT, STYLE, WELCOME_HELP, WELCOME_TITLE
from cli.models import (
    AddCommand,
    ChangeDirectoryCommand,
    CommandRequest,
    GetCommand,
    ListCommand,
    LoginCommand,
    MkdirCommand,
    PwdCommand,
    RelayCommand,
    RemoveCommand,
    SecretCommand,
    StatusCommand,
    UploadCommand,
)
from cli.parser import ParseError, parse_command

HANDLERS = {
    LoginCommand: commands.handle_login,
    SecretCommand: commands.handle_secret,
    RelayCommand: commands.handle_relay,
    StatusCommand: commands.handle_status,
    ListCommand: commands.handle_list,
    ChangeDirectoryCommand: commands.handle_cd,
    PwdCommand: commands.handle_pwd,
    UploadCommand: commands.handle_upload,
    MkdirCommand: commands.handle_mkdir,
    AddCommand: commands.handle_add,
    RemoveCommand: commands.handle_rm,
    GetCommand: commands.handle_get,
}


def clear_screen() -> None:
    os.system("cls" if sys.platform == "win32" else "clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


async def dispatch_command(cmd_obj: CommandRequest) -> str:
    """Run the handler registered for a parsed command."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj).__name__}"
    return await handler(cmd_obj)


def _prompt_message() -> list:
    path = commands.get_service().navigation.path()
    return [("class:prompt", PROMPT_TEXT), ("class:path", f" {path}"), ("", "> ")]


def _handle_builtin(line: str) -> bool:
    """
    Handle shell-only commands.

    Returns:
        True if the line was consumed
    """
    if line == "help":
        print(HELP_TEXT)
        return True
    if line == "clear":
        clear_screen()
        show_welcome()
        return True
    return False


async def repl_loop() -> None:
    """Read-eval-print until 'exit' or EOF; the service is closed on the way out."""
    session: PromptSession = PromptSession(
        completer=DriveCompleter(), history=InMemoryHistory(), style=STYLE
    )

    clear_screen()
    show_welcome()

    try:
        while True:
            try:
                line = (await session.prompt_async(_prompt_message())).strip()
            except KeyboardInterrupt:
                continue
            except EOFError:
                print("\nGoodbye!")
                break

            if not line or _handle_builtin(line):
                continue
            if line == "exit":
                print("Goodbye!")
                break

            try:
                print(await dispatch_command(parse_command(line)))
            except ParseError as e:
                print(f"Error: {e}")
    finally:
        await commands.shutdown_service()
