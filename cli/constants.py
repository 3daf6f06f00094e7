"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = [
    "login", "secret", "relay", "status", "ls", "cd", "pwd",
    "upload", "mkdir", "add", "rm", "get", "clear", "exit", "help",
]

FILE_ARGUMENT_COMMANDS = ("upload", "mkdir", "add")

PLAIN_FLAG = "--plain"

STYLE = Style.from_dict(
    {
        "prompt": "#7B61FF bold",
        "path": "#0088ff",
    }
)

VIOLET = "\033[38;2;123;97;255m"
GREEN = "\033[38;2;46;204;113m"
RESET = "\033[0m"

LOGO = f"""{VIOLET}
 ███████╗██╗  ██╗ ██████╗  ██████╗ ██╗   ██╗███╗   ██╗    ██████╗ ██████╗ ██╗██╗   ██╗███████╗
 ██╔════╝██║  ██║██╔═══██╗██╔════╝ ██║   ██║████╗  ██║    ██╔══██╗██╔══██╗██║██║   ██║██╔════╝
 ███████╗███████║██║   ██║██║  ███╗██║   ██║██╔██╗ ██║    ██║  ██║██████╔╝██║██║   ██║█████╗
 ╚════██║██╔══██║██║   ██║██║   ██║██║   ██║██║╚██╗██║    ██║  ██║██╔══██╗██║╚██╗ ██╔╝██╔══╝
 ███████║██║  ██║╚██████╔╝╚██████╔╝╚██████╔╝██║ ╚████║    ██████╔╝██║  ██║██║ ╚████╔╝ ███████╗
 ╚══════╝╚═╝  ╚═╝ ╚═════╝  ╚═════╝  ╚═════╝ ╚═╝  ╚═══╝    ╚═════╝ ╚═╝  ╚═╝╚═╝  ╚═══╝  ╚══════╝
{RESET}"""

WELCOME_TITLE = "Shogun Drive - Encrypted storage on IPFS"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "drive"

HELP_TEXT = """Available commands:
  login <token>                       Store the relay auth token
  secret <token>                      Store a separate encryption secret (defaults to the auth token)
  relay <url>                         Set the relay URL
  status                              Check relay connection and authentication
  ls                                  List files at the root, or members of the open folder
  cd <folder|..|/>                    Open a folder (name or address), go up, or return to the root
  pwd                                 Show the current folder path
  upload <file>... [--plain]          Upload files to the root (encrypted unless --plain)
  mkdir <name> <file>... [--plain]    Create a folder from local files
  add <file>...                       Add files to the open folder
  rm <name>                           Remove a file from the open folder, or delete a root entry
  get <name> [output]                 Download a file (default: its original name in the working directory)
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Examples:
  login my-relay-token
  upload report.pdf photo.png
  mkdir holidays beach.jpg mountain.jpg
  cd holidays
  add sunset.jpg
  rm beach.jpg
  get sunset.jpg downloads/sunset.jpg"""
