"""Command runner for card sessions: scripts and the interactive REPL."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from functools import partial
from types import ModuleType

try:
    import readline
except ImportError:
    readline = None  # type: ignore[assignment]

from citizencard.core.citizen import CardSession, PublicKeyMaterial

lg = logging.getLogger(__name__)
audit = logging.getLogger("citizencard.audit")


@dataclass
class CardInfo:
    """What the session has learned about the inserted card."""

    card_id: str | None = None
    public_key: PublicKeyMaterial | None = None
    photo: bytes | None = None


def _parse_value(s: str) -> int | str | bool:
    """Parse a command argument value: bool literals, decimal ints, else str."""
    low = s.lower()
    if low in ("true", "yes"):
        return True
    if low in ("false", "no"):
        return False
    try:
        return int(s)
    except ValueError:
        pass
    return s


def parse_command(line: str) -> tuple[str, dict[str, str]] | None:
    """Parse a command line into (name, raw_kwargs).

    Returns None for blank/comment lines.  Values are kept as raw strings;
    the caller decides how to convert them.
    """
    stripped = line.split("#", 1)[0].strip()
    if not stripped:
        return None
    parts = shlex.split(stripped)
    name = parts[0]
    kwargs: dict[str, str] = {}
    for part in parts[1:]:
        if "=" in part:
            k, v = part.split("=", 1)
            kwargs[k] = v
        else:
            kwargs[part] = "true"
    return name, kwargs


class Runner:
    """Holds session state and dispatches commands.

    Every executed command is recorded on the ``citizencard.audit`` logger
    with its outcome.
    """

    def __init__(self, session: CardSession, command_modules: list[ModuleType]) -> None:
        self._session = session
        self._info = CardInfo()
        self._stop_on_error = True
        self._budget = session.terminal.photo_budget

        self._commands: dict[str, callable] = {}
        self._descriptions: dict[str, str] = {}
        self._raw_commands: set[str] = set()
        self._settings: dict[str, callable] = {
            "log": self._set_log,
            "stop_on_error": self._set_stop_on_error,
            "budget": self._set_budget,
        }
        for mod in command_modules:
            for name in dir(mod):
                if name.startswith("cmd_"):
                    func = getattr(mod, name)
                    cmd_name = name[4:]
                    self._commands[cmd_name] = partial(func, self)
                    self._descriptions[cmd_name] = (func.__doc__ or "").split("\n")[0].strip()
            self._raw_commands |= getattr(mod, "_raw_commands", set())

        for attr in dir(self):
            if attr.startswith("cmd_"):
                method = getattr(self, attr)
                cmd_name = attr[4:]
                self._commands[cmd_name] = method
                self._descriptions[cmd_name] = (method.__doc__ or "").split("\n")[0].strip()

        # set handlers parse their own values
        self._raw_commands.add("set")

    @property
    def session(self) -> CardSession:
        return self._session

    @property
    def info(self) -> CardInfo:
        return self._info

    @property
    def budget(self) -> int:
        return self._budget

    # --- Settings ---

    def _set_log(self, value: str) -> None:
        level = logging.getLevelName(value.upper())
        if not isinstance(level, int):
            lg.warning("unknown log level: %s", value)
            return
        logging.getLogger().setLevel(level)
        lg.info("log = %s", value.upper())

    def _set_stop_on_error(self, value: str) -> None:
        self._stop_on_error = value.lower() in ("true", "yes", "1")
        lg.info("stop_on_error = %s", self._stop_on_error)

    def _set_budget(self, value: str) -> None:
        budget = int(value)
        if budget <= 0:
            lg.warning("budget must be positive: %s", value)
            return
        self._budget = budget
        lg.info("budget = %d bytes", budget)

    # --- Commands ---

    def cmd_help(self) -> bool:
        """List available commands."""
        lines = []
        for name in sorted(self._descriptions):
            lines.append(f"  {name:20s} {self._descriptions[name]}")
        lg.info("Commands:\n%s", "\n".join(lines))
        return True

    def cmd_set(self, **kwargs: str) -> bool:
        """Set runner configuration (log=LEVEL, stop_on_error=BOOL, budget=BYTES)."""
        for k, v in kwargs.items():
            handler = self._settings.get(k)
            if handler is None:
                lg.warning("unknown setting: %s", k)
            else:
                handler(v)
        return True

    # --- Execution ---

    def execute(self, line: str) -> bool:
        """Parse and execute one command line. Returns True on success."""
        parsed = parse_command(line)
        if parsed is None:
            return True  # blank or comment
        name, raw_kwargs = parsed
        if name in ("quit", "exit"):
            raise StopIteration
        cmd = self._commands.get(name)
        if cmd is None:
            lg.error("unknown command: %s", name)
            return False
        if name in self._raw_commands:
            kwargs = raw_kwargs
        else:
            kwargs = {k: _parse_value(v) for k, v in raw_kwargs.items()}
        try:
            ok = cmd(**kwargs)
        except TypeError as exc:
            lg.error("bad arguments for '%s': %s", name, exc)
            ok = False
        except Exception as exc:
            lg.error("command '%s' failed: %s", name, exc)
            ok = False
        audit.info("%s %s", name, "ok" if ok else "failed")
        return ok

    def _complete(self, text: str, state: int) -> str | None:
        """Readline completer for command names."""
        if state == 0:
            names = sorted(self._commands) + ["quit", "exit"]
            self._matches = [n for n in names if n.startswith(text)]
        return self._matches[state] if state < len(self._matches) else None

    def run_file(self, path: str) -> bool:
        """Read and execute commands from a file. Returns True if all succeed."""
        with open(path) as f:
            lines = f.readlines()
        for i, line in enumerate(lines, 1):
            try:
                ok = self.execute(line)
            except StopIteration:
                return True
            if not ok and self._stop_on_error:
                lg.error("stopped at line %d: %s", i, line.strip())
                return False
        return True

    def run_interactive(self, prompt: str = "citizencard> ") -> None:
        """Interactive REPL with readline support."""
        lg.info("interactive mode: type 'help' for commands, 'quit' to exit")
        if readline is not None:
            readline.set_completer(self._complete)
            readline.set_completer_delims(" ")
            readline.parse_and_bind("tab: complete")
        while True:
            try:
                line = input(prompt)
            except (EOFError, KeyboardInterrupt):
                print()
                return
            try:
                self.execute(line)
            except StopIteration:
                return
