from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from lexer import NUMERAL_START
from values import (
    IBASE_MAX,
    IBASE_MIN,
    TYPE_FLT,
    TYPE_INT,
    TYPE_STR,
    DCRuntimeError,
    DCState,
    EndOfInputError,
    InvalidParameterError,
    UnimplementedInstructionError,
    Value,
    add,
    compare,
    div,
    divmod_values,
    expect_int,
    make_int,
    make_str,
    mod,
    mul,
    power,
    square_root,
    sub,
    to_char,
)


# Control actions returned to the evaluator.
ACTION_OKAY = "OKAY"
ACTION_EATONE = "EATONE"
ACTION_EVALREG = "EVALREG"
ACTION_EVALTOS = "EVALTOS"
ACTION_QUIT = "QUIT"
ACTION_INT = "INT"
ACTION_STR = "STR"
ACTION_COMMENT = "COMMENT"
ACTION_NEGCMP = "NEGCMP"
ACTION_SYSTEM = "SYSTEM"

COMPARISONS = "<=>"

InstructionImpl = Callable[[Optional[str], bool], str]
Printer = Callable[[Value, bool], None]


@dataclass
class Instruction:
    name: str
    impl: InstructionImpl
    # Register, array and conditional instructions read the next character.
    needs_operand: bool = False


class Dispatcher:
    """Single-character instruction table over one ``DCState``.

    ``dispatch`` is total: characters without an entry resolve to the
    unimplemented instruction.
    """

    def __init__(self, state: DCState, *, printer: Printer) -> None:
        self.state = state
        self.printer = printer
        self.table: Dict[str, Instruction] = {}
        self.unimplemented = Instruction("unimplemented", self._unimplemented)

        for ch in NUMERAL_START:
            self._define(ch, lambda _p, _n: ACTION_INT)
        for ch in " \t\n":
            self._define(ch, lambda _p, _n: ACTION_OKAY)
        self._define("#", lambda _p, _n: ACTION_COMMENT)
        self._define("[", lambda _p, _n: ACTION_STR)
        self._define("!", self._bang)

        self._define("+", self._binop(add))
        self._define("-", self._binop(sub))
        self._define("*", self._binop(mul))
        self._define("/", self._binop(div))
        self._define("%", self._binop(mod))
        self._define("^", self._binop(power))
        self._define("~", self._divmod)
        self._define("<", self._comparison("<", lambda r: r < 0), needs_operand=True)
        self._define("=", self._comparison("=", lambda r: r == 0), needs_operand=True)
        self._define(">", self._comparison(">", lambda r: r > 0), needs_operand=True)

        self._define("a", self._to_char)
        self._define("c", self._clear)
        self._define("d", self._duplicate)
        self._define("f", self._print_all)
        self._define("i", self._set_ibase)
        self._define("k", self._set_scale)
        self._define("l", self._load, needs_operand=True)
        self._define("n", self._print_pop)
        self._define("o", self._set_obase)
        self._define("p", self._print_peek)
        self._define("q", self._quit)
        self._define("r", self._swap)
        self._define("s", self._store, needs_operand=True)
        self._define("v", self._sqrt)
        self._define("x", lambda _p, _n: ACTION_EVALTOS)
        self._define("z", self._depth)
        self._define("I", lambda _p, _n: self._push_int(self.state.ibase))
        self._define("K", lambda _p, _n: self._push_int(self.state.scale))
        self._define("L", self._pop_register, needs_operand=True)
        self._define("O", lambda _p, _n: self._push_int(self.state.obase))
        self._define("P", self._dump)
        self._define("Q", self._quit_levels)
        self._define("S", self._push_register, needs_operand=True)
        self._define("X", self._scale_of)
        self._define("Z", self._length)
        self._define(":", self._array_store, needs_operand=True)
        self._define(";", self._array_fetch, needs_operand=True)
        # Documented in dc but without defined behavior here.
        self._define("|", self._unimplemented)
        self._define("?", self._unimplemented)

    def _define(self, name: str, impl: InstructionImpl, *, needs_operand: bool = False) -> None:
        self.table[name] = Instruction(name=name, impl=impl, needs_operand=needs_operand)

    def dispatch(self, ch: str, peekc: Optional[str], negcmp: bool = False) -> str:
        instruction = self.table.get(ch, self.unimplemented)
        if instruction.needs_operand and peekc is None:
            raise EndOfInputError(f"'{ch}' needs a register name", instruction=ch)
        try:
            return instruction.impl(peekc, negcmp)
        except DCRuntimeError as error:
            if error.instruction is None:
                error.instruction = ch
            raise

    # Helpers
    def _push_int(self, number: int) -> str:
        self.state.stack.push(make_int(number))
        return ACTION_OKAY

    def _unimplemented(self, _peekc: Optional[str], _negcmp: bool) -> str:
        raise UnimplementedInstructionError("instruction not implemented")

    def _binop(self, op: Callable[[Value, Value], Value]) -> InstructionImpl:
        def impl(_peekc: Optional[str], _negcmp: bool) -> str:
            stack = self.state.stack
            right = stack.pop()
            left = stack.pop()
            stack.push(op(left, right))
            return ACTION_OKAY

        return impl

    def _divmod(self, _peekc: Optional[str], _negcmp: bool) -> str:
        stack = self.state.stack
        right = stack.pop()
        left = stack.pop()
        quotient, remainder = divmod_values(left, right)
        stack.push(quotient)
        stack.push(remainder)
        return ACTION_OKAY

    def _comparison(self, name: str, test: Callable[[int], bool]) -> InstructionImpl:
        def impl(peekc: Optional[str], negcmp: bool) -> str:
            stack = self.state.stack
            top = stack.pop()
            second = stack.pop()
            if test(compare(top, second, name)) != negcmp:
                return ACTION_EVALREG
            return ACTION_EATONE

        return impl

    def _bang(self, peekc: Optional[str], _negcmp: bool) -> str:
        if peekc is not None and peekc in COMPARISONS:
            return ACTION_NEGCMP
        return ACTION_SYSTEM

    # Stack instructions
    def _to_char(self, _peekc: Optional[str], _negcmp: bool) -> str:
        stack = self.state.stack
        stack.push(make_str(to_char(stack.pop(), "a")))
        return ACTION_OKAY

    def _clear(self, _peekc: Optional[str], _negcmp: bool) -> str:
        self.state.stack.clear()
        return ACTION_OKAY

    def _duplicate(self, _peekc: Optional[str], _negcmp: bool) -> str:
        stack = self.state.stack
        stack.push(stack.peek())
        return ACTION_OKAY

    def _swap(self, _peekc: Optional[str], _negcmp: bool) -> str:
        stack = self.state.stack
        top = stack.pop()
        second = stack.pop()
        stack.push(top)
        stack.push(second)
        return ACTION_OKAY

    def _sqrt(self, _peekc: Optional[str], _negcmp: bool) -> str:
        stack = self.state.stack
        stack.push(square_root(stack.pop()))
        return ACTION_OKAY

    def _depth(self, _peekc: Optional[str], _negcmp: bool) -> str:
        return self._push_int(self.state.stack.depth)

    # Output
    def _print_all(self, _peekc: Optional[str], _negcmp: bool) -> str:
        for value in self.state.stack:
            self.printer(value, True)
        return ACTION_OKAY

    def _print_pop(self, _peekc: Optional[str], _negcmp: bool) -> str:
        self.printer(self.state.stack.pop(), False)
        return ACTION_OKAY

    def _print_peek(self, _peekc: Optional[str], _negcmp: bool) -> str:
        self.printer(self.state.stack.peek(), True)
        return ACTION_OKAY

    def _dump(self, _peekc: Optional[str], _negcmp: bool) -> str:
        value = self.state.stack.pop()
        if value.type != TYPE_STR:
            value = make_str(to_char(value, "P"))
        self.printer(value, False)
        return ACTION_OKAY

    # Parameters
    def _set_ibase(self, _peekc: Optional[str], _negcmp: bool) -> str:
        base = expect_int(self.state.stack.pop(), "i")
        if not IBASE_MIN <= base <= IBASE_MAX:
            raise InvalidParameterError(f"input base {base} out of range", instruction="i")
        self.state.ibase = base
        return ACTION_OKAY

    def _set_obase(self, _peekc: Optional[str], _negcmp: bool) -> str:
        base = expect_int(self.state.stack.pop(), "o")
        if base <= 1:
            raise InvalidParameterError(f"output base {base} out of range", instruction="o")
        self.state.obase = base
        return ACTION_OKAY

    def _set_scale(self, _peekc: Optional[str], _negcmp: bool) -> str:
        scale = expect_int(self.state.stack.pop(), "k")
        if scale < 0:
            raise InvalidParameterError(f"scale {scale} is negative", instruction="k")
        self.state.scale = scale
        return ACTION_OKAY

    def _scale_of(self, _peekc: Optional[str], _negcmp: bool) -> str:
        value = self.state.stack.pop()
        if value.is_numeric:
            raise UnimplementedInstructionError("scale of a number is not implemented", instruction="X")
        return self._push_int(0)

    def _length(self, _peekc: Optional[str], _negcmp: bool) -> str:
        value = self.state.stack.pop()
        if value.type == TYPE_INT:
            number = abs(value.value)
            length = 2 if value.value < 0 else 1
            while number >= self.state.obase:
                number //= self.state.obase
                length += 1
        elif value.type == TYPE_FLT:
            length = len(str(value.value).replace(".", ""))
        else:
            length = len(value.value)
        return self._push_int(length)

    # Quit
    def _quit(self, _peekc: Optional[str], _negcmp: bool) -> str:
        self.state.unwind_depth = 1
        return ACTION_QUIT

    def _quit_levels(self, _peekc: Optional[str], _negcmp: bool) -> str:
        levels = expect_int(self.state.stack.pop(), "Q")
        if levels <= 0:
            raise InvalidParameterError(f"cannot quit {levels} levels", instruction="Q")
        self.state.unwind_depth = levels - 1
        return ACTION_QUIT

    # Registers
    def _load(self, peekc: Optional[str], _negcmp: bool) -> str:
        self.state.stack.push(self.state.existing_register(peekc).value)
        return ACTION_EATONE

    def _store(self, peekc: Optional[str], _negcmp: bool) -> str:
        value = self.state.stack.pop()
        self.state.register(peekc).value = value
        return ACTION_EATONE

    def _pop_register(self, peekc: Optional[str], _negcmp: bool) -> str:
        self.state.stack.push(self.state.existing_register(peekc).pop())
        return ACTION_EATONE

    def _push_register(self, peekc: Optional[str], _negcmp: bool) -> str:
        value = self.state.stack.pop()
        self.state.register(peekc).push(value)
        return ACTION_EATONE

    # Arrays
    def _array_store(self, peekc: Optional[str], _negcmp: bool) -> str:
        stack = self.state.stack
        index = expect_int(stack.pop(), ":")
        value = stack.pop()
        self.state.array(peekc).store(index, value)
        return ACTION_EATONE

    def _array_fetch(self, peekc: Optional[str], _negcmp: bool) -> str:
        index = expect_int(self.state.stack.pop(), ";")
        self.state.stack.push(self.state.existing_array(peekc).fetch(index, peekc))
        return ACTION_EATONE
