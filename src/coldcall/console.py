import sys

RESET = "\x1b[0m"
BRIGHT = "\x1b[1m"
DIM = "\x1b[2m"
RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
BLUE = "\x1b[34m"
MAGENTA = "\x1b[35m"
CYAN = "\x1b[36m"


def color(text: str, code: str) -> str:
    return f"{code}{text}{RESET}"


def score_color(score: float) -> str:
    if score >= 8.5:
        return GREEN
    if score >= 7:
        return YELLOW
    return RED


def print_header(title: str, out=None) -> None:
    out = out or sys.stdout
    print(f"\n{color(title, BRIGHT + CYAN)}", file=out)
    print("─" * 60, file=out)


def print_success(message: str, out=None) -> None:
    print(color(f"✅ {message}", GREEN), file=out or sys.stdout)


def print_error(message: str, out=None) -> None:
    print(color(f"❌ {message}", RED), file=out or sys.stderr)


def print_info(label: str, value, out=None) -> None:
    print(f"  {color(label + ':', DIM)} {value}", file=out or sys.stdout)
