"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["token", "logout", "ls", "cd", "pwd", "mkdir", "hash", "upload", "upload-dir", "clear", "exit", "help"]

# Commands whose arguments are local filesystem paths.
LOCAL_PATH_COMMANDS = ("hash", "upload", "upload-dir")

STYLE = Style.from_dict(
    {
        "prompt": "#2E9BF4 bold",
        "command": "#0088ff bold",
    }
)

SKY_BLUE = "\033[38;2;46;155;244m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{SKY_BLUE}
 ____   _    _   _ _   _ ____  _     ___    _    ____
|  _ \\ / \\  | \\ | | | | |  _ \\| |   / _ \\  / \\  |  _ \\
| |_) / _ \\ |  \\| | | | | |_) | |  | | | |/ _ \\ | | | |
|  __/ ___ \\| |\\  | |_| |  __/| |__| |_| / ___ \\| |_| |
|_| /_/   \\_\\_| \\_|\\___/|_|   |_____\\___/_/   \\_\\____/
{RESET}"""

WELCOME_TITLE = "panupload - resumable uploads with instant dedup"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "pan> "

NO_CREATE_FLAG = "--no-create"

HELP_TEXT = """Available commands:
  token <bearer-token>                       Save the bearer token issued on login
  logout                                     Forget the token and current folder
  pwd                                        Show the current remote folder
  cd <path>                                  Change the current remote folder
  ls [path]                                  List a remote folder (default: current)
  mkdir <path>                               Create a remote folder path
  hash <file>                                Print the SHA-256 digest of a local file
  upload <file> [path] [--no-create]         Upload a file (instant upload when possible)
  upload-dir <dir> [path] [--no-create]      Upload a local folder tree
  clear                                      Clear screen and redisplay welcome message
  help                                       Show this help
  exit                                       Exit REPL

Remote paths are relative to the current folder; a leading '/' (or 'root') starts at the root.
Missing target folders are created unless --no-create is given.
Examples:
  token eyJhbGciOiJIUzI1NiJ9.eyJ1c2VyX2lkIjo3fQ.sig
  mkdir /backups/2024
  cd /backups
  upload ./report.pdf 2024
  upload-dir ./photos /albums
  ls /albums/photos"""
