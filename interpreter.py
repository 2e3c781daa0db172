from __future__ import annotations
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from dispatch import (
    ACTION_COMMENT,
    ACTION_EATONE,
    ACTION_EVALREG,
    ACTION_EVALTOS,
    ACTION_INT,
    ACTION_NEGCMP,
    ACTION_OKAY,
    ACTION_QUIT,
    ACTION_STR,
    ACTION_SYSTEM,
    Dispatcher,
)
from extensions import (
    EVENT_COMMAND,
    EVENT_ON_ERROR,
    EVENT_PROGRAM_END,
    EVENT_PROGRAM_START,
    CommandRunner,
    HookRegistry,
    OutputSink,
    RuntimeServices,
    build_default_services,
)
from lexer import Lexer
from values import TYPE_FLT, TYPE_INT, TYPE_STR, DCRuntimeError, DCState, Value


DIGIT_CHARS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
MACRO_FRAME_NAME = "<macro>"


def format_integer(number: int, base: int) -> str:
    """Render ``number`` in ``base``.

    Bases up to 36 use one character per digit. Larger bases print each
    digit as a space-prefixed, zero-padded decimal group.
    """
    if number < 0:
        return "-" + format_integer(-number, base)
    digits: List[int] = []
    while True:
        number, digit = divmod(number, base)
        digits.append(digit)
        if number == 0:
            break
    digits.reverse()
    if base <= len(DIGIT_CHARS):
        return "".join(DIGIT_CHARS[d] for d in digits)
    width = len(str(base - 1))
    return "".join(" " + str(d).zfill(width) for d in digits)


@dataclass
class TracebackFrame:
    name: str
    line: int
    column: int
    tail_depth: int
    statement: str


@dataclass
class MacroFrame:
    """One native evaluation; ``tail_depth`` counts the macros flattened into it."""

    name: str
    lexer: Lexer
    tail_depth: int = 1
    position: int = 0

    def snapshot(self) -> TracebackFrame:
        line, column = self.lexer.location(self.position)
        return TracebackFrame(
            name=self.name,
            line=line,
            column=column,
            tail_depth=self.tail_depth,
            statement=self.lexer.source_line(self.position),
        )


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    frame_depth: int
    instruction: str
    position: int
    action: str
    stack_depth: int


class StateLogger:
    """Counts dispatched instructions; keeps a full step record when verbose."""

    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose
        self.entries: List[StateEntry] = []
        self.next_state_index = 0
        self.last_instruction: Optional[str] = None

    def record(
        self,
        *,
        frame_depth: int,
        instruction: str,
        position: int,
        action: str,
        stack_depth: int,
    ) -> Optional[StateEntry]:
        step_index = self.next_state_index
        self.next_state_index += 1
        self.last_instruction = instruction
        if not self.verbose:
            return None
        entry = StateEntry(
            step_index=step_index,
            state_id=f"s_{step_index:06d}",
            frame_depth=frame_depth,
            instruction=instruction,
            position=position,
            action=action,
            stack_depth=stack_depth,
        )
        self.entries.append(entry)
        return entry

    @property
    def last_step_index(self) -> Optional[int]:
        if self.next_state_index == 0:
            return None
        return self.next_state_index - 1


class Interpreter:
    def __init__(
        self,
        *,
        verbose: bool = False,
        services: Optional[RuntimeServices] = None,
        output_sink: Optional[OutputSink] = None,
        command_runner: Optional[CommandRunner] = None,
    ) -> None:
        self.verbose = verbose
        self.services = services or build_default_services()
        self.hook_registry: HookRegistry = self.services.hook_registry
        self.output_sink = output_sink or self.services.output_sink
        self.command_runner = command_runner or self.services.command_runner
        self.logger = StateLogger(verbose=verbose)
        self.call_stack: List[MacroFrame] = []
        self.reset()

    def reset(self) -> None:
        """Discard the stack, registers, arrays and radix settings."""
        self.state = DCState()
        self.dispatcher = Dispatcher(self.state, printer=self._print_value)
        self.call_stack = []

    # Public
    def run(self, source: str, filename: str = "<string>") -> str:
        """Evaluate a whole program; returns ``ACTION_QUIT`` if it asked to stop."""
        self.call_stack = []
        self.state.unwind_depth = 0
        self._emit_event(EVENT_PROGRAM_START, self, source)
        try:
            result = self.evaluate(source, name=filename)
        except DCRuntimeError as error:
            self._fail(error)
            raise
        except Exception as exc:
            # Convert unexpected Python-level exceptions (deep macro recursion
            # included) so callers can format them as dc tracebacks.
            wrapped = DCRuntimeError(f"Internal interpreter error: {exc}")
            self._fail(wrapped)
            raise wrapped from exc
        self._emit_event(EVENT_PROGRAM_END, self, result)
        return result

    def evaluate(self, text: str, name: str = MACRO_FRAME_NAME) -> str:
        frame = MacroFrame(name=name, lexer=Lexer(text))
        self.call_stack.append(frame)
        result = self._execute_frame(frame)
        self.call_stack.pop()
        return result

    def format_value(self, value: Value) -> str:
        if value.type == TYPE_INT:
            return format_integer(value.value, self.state.obase)
        if value.type == TYPE_FLT:
            return str(value.value)
        return value.value

    # Evaluation
    def _execute_frame(self, frame: MacroFrame) -> str:
        state = self.state
        dispatch = self.dispatcher.dispatch
        log_step = self.logger.record
        next_negcmp = False

        while not frame.lexer.eof:
            lexer = frame.lexer
            frame.position = lexer.index
            ch = lexer.next_char()
            peekc = lexer.peek()
            negcmp, next_negcmp = next_negcmp, False

            action = dispatch(ch, peekc, negcmp)
            log_step(
                frame_depth=len(self.call_stack),
                instruction=ch,
                position=frame.position,
                action=action,
                stack_depth=len(state.stack),
            )

            if action == ACTION_OKAY:
                continue
            if action == ACTION_EATONE:
                lexer.index += 1
            elif action == ACTION_EVALREG:
                lexer.index += 1
                result = self._call_macro(frame, state.existing_register(peekc).value)
                if result is not None:
                    return result
            elif action == ACTION_EVALTOS:
                result = self._call_macro(frame, state.stack.pop())
                if result is not None:
                    return result
            elif action == ACTION_QUIT:
                if state.unwind_depth >= frame.tail_depth:
                    state.unwind_depth -= frame.tail_depth
                    return ACTION_QUIT
                return ACTION_OKAY
            elif action == ACTION_INT:
                lexer.index -= 1
                state.stack.push(lexer.scan_numeral(state.ibase))
            elif action == ACTION_STR:
                state.stack.push(lexer.scan_string())
            elif action == ACTION_SYSTEM:
                command = lexer.rest_of_line()
                self._emit_event(EVENT_COMMAND, self, command)
                self.command_runner(command)
            elif action == ACTION_COMMENT:
                lexer.skip_comment()
            elif action == ACTION_NEGCMP:
                next_negcmp = True
            else:
                raise DCRuntimeError(f"Unknown control action {action}", instruction=ch)
        return ACTION_OKAY

    def _call_macro(self, frame: MacroFrame, macro: Value) -> Optional[str]:
        # None: keep executing ``frame``; otherwise ``frame`` returns the action.
        lexer = frame.lexer
        lexer.skip_blank()
        if macro.type != TYPE_STR:
            self.state.stack.push(macro)
            return None
        if lexer.eof:
            # Tail call: reuse this frame instead of nesting.
            frame.lexer = Lexer(macro.value)
            frame.position = 0
            frame.tail_depth += 1
            return None
        if self.evaluate(macro.value) == ACTION_QUIT:
            if self.state.unwind_depth > 0:
                self.state.unwind_depth -= 1
                return ACTION_QUIT
            return ACTION_OKAY
        return None

    # Output
    def _print_value(self, value: Value, newline: bool) -> None:
        text = self.format_value(value)
        if newline:
            text += "\n"
        self.output_sink(text)

    # Errors and hooks
    def _fail(self, error: DCRuntimeError) -> None:
        error.step_index = self.logger.last_step_index
        if error.instruction is None:
            error.instruction = self.logger.last_instruction
        error.frames = [frame.snapshot() for frame in self.call_stack]
        self.call_stack = []
        self._emit_event(EVENT_ON_ERROR, self, error)

    def _emit_event(self, event: str, *args: Any) -> None:
        self.hook_registry.emit(event, *args)


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def _stack_text(self) -> List[str]:
        return [self.interpreter.format_value(v) for v in self.interpreter.state.stack]

    def format_text(self, error: DCRuntimeError, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        for frame in error.frames:
            where = f"  File \"{frame.name}\", line {frame.line}, column {frame.column}"
            if frame.tail_depth > 1:
                where += f" (tail depth {frame.tail_depth})"
            lines.append(where)
            if frame.statement:
                lines.append(f"    {frame.statement}")
        if error.step_index is not None:
            lines.append(f"    Step index: {error.step_index}")
        if verbose:
            lines.append(f"    Stack (top first): {' | '.join(self._stack_text())}")
        instruction = error.instruction if error.instruction is not None else "?"
        lines.append(f"{error.__class__.__name__}: {error.message} (instruction: {instruction!r})")
        return "\n".join(lines)

    def to_json(self, error: DCRuntimeError) -> str:
        frames_json: List[Dict[str, Any]] = []
        for index, frame in enumerate(error.frames):
            frames_json.append(
                {
                    "frame_index": index,
                    "name": frame.name,
                    "line": frame.line,
                    "column": frame.column,
                    "tail_depth": frame.tail_depth,
                    "statement": frame.statement,
                }
            )
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "instruction": error.instruction,
                "failing_step_index": error.step_index,
            },
            "traceback": frames_json,
            "stack": self._stack_text(),
        }
        return json.dumps(data, indent=2)
