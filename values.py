from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


TYPE_INT = "INT"
TYPE_FLT = "FLT"
TYPE_STR = "STR"

IBASE_MIN = 2
IBASE_MAX = 16


class DCError(Exception):
    """Base class for interpreter errors."""


class DCRuntimeError(DCError):
    """Raised for runtime faults."""

    def __init__(self, message: str, *, instruction: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.instruction = instruction
        self.step_index: Optional[int] = None
        self.frames: List[Any] = []


class StackEmptyError(DCRuntimeError):
    pass


class EndOfInputError(DCRuntimeError):
    pass


class UnimplementedInstructionError(DCRuntimeError):
    pass


class InvalidParameterError(DCRuntimeError):
    pass


class DivisionByZeroError(InvalidParameterError):
    pass


class MissingKeyError(DCRuntimeError):
    pass


class TypeMismatchError(DCRuntimeError):
    pass


@dataclass(frozen=True)
class Value:
    type: str
    value: Any

    @property
    def is_numeric(self) -> bool:
        return self.type == TYPE_INT or self.type == TYPE_FLT


def make_int(number: int) -> Value:
    return Value(TYPE_INT, number)


def make_flt(number: float) -> Value:
    return Value(TYPE_FLT, number)


def make_str(text: str) -> Value:
    return Value(TYPE_STR, text)


DEFAULT_VALUE = make_int(0)


class Stack:
    """LIFO of Values. Iteration runs from the top down and never mutates."""

    def __init__(self) -> None:
        self._items: List[Value] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Value]:
        return reversed(self._items)

    def __repr__(self) -> str:
        return f"Stack{self._items}"

    @property
    def depth(self) -> int:
        return len(self._items)

    def push(self, value: Value) -> None:
        self._items.append(value)

    def pop(self) -> Value:
        if not self._items:
            raise StackEmptyError("stack empty")
        return self._items.pop()

    def peek(self) -> Value:
        if not self._items:
            raise StackEmptyError("stack empty")
        return self._items[-1]

    def clear(self) -> None:
        self._items.clear()


@dataclass
class Register:
    value: Value = DEFAULT_VALUE
    saved: Stack = field(default_factory=Stack)

    def push(self, value: Value) -> None:
        self.saved.push(self.value)
        self.value = value

    def pop(self) -> Value:
        current = self.value
        self.value = self.saved.pop() if len(self.saved) else DEFAULT_VALUE
        return current


@dataclass
class DCArray:
    # Sparse: only written indices exist.
    cells: Dict[int, Value] = field(default_factory=dict)

    def store(self, index: int, value: Value) -> None:
        if index < 0:
            raise InvalidParameterError(f"array index {index} is negative")
        self.cells[index] = value

    def fetch(self, index: int, name: str) -> Value:
        try:
            return self.cells[index]
        except KeyError:
            raise MissingKeyError(f"array '{name}' has no element {index}")


@dataclass
class DCState:
    stack: Stack = field(default_factory=Stack)
    registers: Dict[str, Register] = field(default_factory=dict)
    arrays: Dict[str, DCArray] = field(default_factory=dict)
    ibase: int = 10
    obase: int = 10
    scale: int = 0
    unwind_depth: int = 0

    def register(self, name: str) -> Register:
        reg = self.registers.get(name)
        if reg is None:
            reg = self.registers[name] = Register()
        return reg

    def existing_register(self, name: str) -> Register:
        try:
            return self.registers[name]
        except KeyError:
            raise MissingKeyError(f"register '{name}' is empty")

    def array(self, name: str) -> DCArray:
        arr = self.arrays.get(name)
        if arr is None:
            arr = self.arrays[name] = DCArray()
        return arr

    def existing_array(self, name: str) -> DCArray:
        try:
            return self.arrays[name]
        except KeyError:
            raise MissingKeyError(f"array '{name}' is empty")


# Helpers

def expect_int(value: Value, rule: str) -> int:
    """Coerce a numeric operand to an integer (floats truncate toward zero)."""
    if value.type == TYPE_INT:
        return value.value
    if value.type == TYPE_FLT:
        return int(value.value)
    raise TypeMismatchError(f"{rule} expects a number", instruction=rule)


def expect_num_pair(left: Value, right: Value, rule: str) -> Tuple[str, Any, Any]:
    if not (left.is_numeric and right.is_numeric):
        raise TypeMismatchError(f"{rule} expects numeric operands", instruction=rule)
    if left.type == TYPE_INT and right.type == TYPE_INT:
        return TYPE_INT, left.value, right.value
    try:
        return TYPE_FLT, float(left.value), float(right.value)
    except OverflowError:
        raise InvalidParameterError(f"{rule} operand too large for a float", instruction=rule)


def _float_result(rule: str, func: Any, *args: Any) -> Value:
    try:
        return make_flt(func(*args))
    except OverflowError:
        raise InvalidParameterError(f"{rule} result out of range", instruction=rule)


def add(left: Value, right: Value) -> Value:
    t, a, b = expect_num_pair(left, right, "+")
    return Value(t, a + b)


def sub(left: Value, right: Value) -> Value:
    t, a, b = expect_num_pair(left, right, "-")
    return Value(t, a - b)


def mul(left: Value, right: Value) -> Value:
    t, a, b = expect_num_pair(left, right, "*")
    return Value(t, a * b)


def div(left: Value, right: Value) -> Value:
    t, a, b = expect_num_pair(left, right, "/")
    if b == 0:
        raise DivisionByZeroError("divide by zero", instruction="/")
    if t == TYPE_INT:
        return make_int(a // b)
    return make_flt(a / b)


def mod(left: Value, right: Value) -> Value:
    t, a, b = expect_num_pair(left, right, "%")
    if b == 0:
        raise DivisionByZeroError("remainder by zero", instruction="%")
    return Value(t, a % b)


def divmod_values(left: Value, right: Value) -> Tuple[Value, Value]:
    t, a, b = expect_num_pair(left, right, "~")
    if b == 0:
        raise DivisionByZeroError("divide by zero", instruction="~")
    quotient, remainder = divmod(a, b)
    return Value(t, quotient), Value(t, remainder)


def power(left: Value, right: Value) -> Value:
    t, a, b = expect_num_pair(left, right, "^")
    if a == 0 and b < 0:
        raise DivisionByZeroError("zero raised to a negative power", instruction="^")
    if t == TYPE_INT:
        if b >= 0:
            return make_int(a ** b)
        return _float_result("^", lambda x, y: pow(float(x), float(y)), a, b)
    if a < 0 and not b.is_integer():
        raise InvalidParameterError("negative base with fractional exponent", instruction="^")
    return _float_result("^", pow, a, b)


def compare(top: Value, second: Value, rule: str) -> int:
    """Three-way compare of the popped top against the value beneath it.

    Mixed Integer/Float pairs compare exactly, without converting the Integer.
    """
    if not (top.is_numeric and second.is_numeric):
        raise TypeMismatchError(f"{rule} expects numeric operands", instruction=rule)
    a, b = top.value, second.value
    return (a > b) - (a < b)


def square_root(value: Value) -> Value:
    if not value.is_numeric:
        raise TypeMismatchError("v expects a number", instruction="v")
    if value.value < 0:
        raise InvalidParameterError("square root of negative number", instruction="v")
    return _float_result("v", math.sqrt, value.value)


def to_char(value: Value, rule: str) -> str:
    if value.type == TYPE_STR:
        return value.value[:1]
    code = expect_int(value, rule)
    if not 0 <= code <= 0x10FFFF:
        raise InvalidParameterError(f"{code} is not a character code", instruction=rule)
    return chr(code)
