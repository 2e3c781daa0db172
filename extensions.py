from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple

from values import DCError, DCRuntimeError


EVENT_PROGRAM_START = "program_start"
EVENT_PROGRAM_END = "program_end"
EVENT_ON_ERROR = "on_error"
EVENT_COMMAND = "command"

KNOWN_EVENTS = (EVENT_PROGRAM_START, EVENT_PROGRAM_END, EVENT_ON_ERROR, EVENT_COMMAND)


class DCExtensionError(DCError):
    pass


OutputSink = Callable[[str], None]
CommandRunner = Callable[[str], None]


@dataclass
class HookRegistry:
    # event -> list[(priority, handler)]
    _events: Dict[str, List[Tuple[int, Callable[..., None]]]] = field(default_factory=dict)

    def on_event(self, event: str, handler: Callable[..., None], *, priority: int = 0) -> None:
        if event not in KNOWN_EVENTS:
            raise DCExtensionError(f"Unknown event '{event}'")
        self._events.setdefault(event, []).append((priority, handler))
        self._events[event].sort(key=lambda t: t[0], reverse=True)

    def emit(self, event: str, *args: Any, **kwargs: Any) -> None:
        for _priority, handler in self._events.get(event, []):
            handler(*args, **kwargs)


def write_stdout(text: str) -> None:
    sys.stdout.write(text)


def run_shell_command(command: str) -> None:
    """Run ``command`` through the host shell and ignore its result.

    Interpreter output is flushed first so the command's own output lands
    after anything already printed.
    """
    sys.stdout.flush()
    try:
        subprocess.run(command, shell=True)
    except OSError as exc:
        raise DCRuntimeError(f"command failed: {exc}", instruction="!")


@dataclass
class RuntimeServices:
    output_sink: OutputSink = write_stdout
    command_runner: CommandRunner = run_shell_command
    hook_registry: HookRegistry = field(default_factory=HookRegistry)


def build_default_services() -> RuntimeServices:
    return RuntimeServices()
