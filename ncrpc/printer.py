# Step-by-step narration for the command line client. Everything here goes to
# stderr so stdout only ever carries reply XML or query results.

import sys


def _supports_color():
    return sys.stderr.isatty()


class C:
    if _supports_color():
        RESET="\033[0m"; BOLD="\033[1m"
        RED="\033[31m"; GREEN="\033[32m"; YELLOW="\033[33m"; BLUE="\033[34m"; GRAY="\033[90m"
    else:
        RESET=""; BOLD=""
        RED=""; GREEN=""; YELLOW=""; BLUE=""; GRAY=""


# ASCII-only icons
ICON = {
    "section": "[SEC]",
    "plan": "[PLAN]",
    "build": "[RPC]",
    "preflight": "[NET]",
    "connect": "[SSH]",
    "send": "[SEND]",
    "reply": "[REPLY]",
    "render": "[OUT]",
    "done": "[DONE]",
    "ok": "[OK]",
    "warn": "[WARN]",
    "fail": "[FAIL]",
    "info": "[INFO]",
}


class Printer:
    def __init__(self, enable_color=True, quiet=False, stream=None):
        self.step_no = 0
        self.enable_color = enable_color and _supports_color()
        self.quiet = quiet
        self.stream = stream if stream is not None else sys.stderr

    def _color(self, text, color):
        if not self.enable_color: return text
        return f"{color}{text}{C.RESET}"

    def _print(self, line):
        if not self.quiet:
            print(line, file=self.stream)

    def section(self, title):
        self._print(self._color('-'*80, C.GRAY))
        self._print(f"{ICON['section']}  {self._color(title, C.BOLD)}")
        self._print(self._color('-'*80, C.GRAY))

    def step(self, label, icon, title):
        self.step_no += 1
        self._print(f"{self._color(f'[Step {self.step_no:02d}]', C.BLUE)} {icon} {self._color(label, C.BOLD)} - {title}")

    def info(self, msg):
        self._print(f"  {ICON['info']}  {msg}")

    def ok(self, msg="OK"):
        self._print(f"  {self._color(ICON['ok'] + ' ' + msg, C.GREEN)}")

    def warn(self, msg):
        self._print(f"  {self._color(ICON['warn'] + ' ' + msg, C.YELLOW)}")

    def fail(self, msg):
        # failures are shown even in quiet mode
        print(f"  {self._color(ICON['fail'] + ' ' + msg, C.RED)}", file=self.stream)
