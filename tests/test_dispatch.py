import unittest

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
from values import (
    DCState,
    EndOfInputError,
    InvalidParameterError,
    MissingKeyError,
    UnimplementedInstructionError,
    make_flt,
    make_int,
    make_str,
)


class DispatchTest(unittest.TestCase):
    def setUp(self):
        self.state = DCState()
        self.printed = []
        self.d = Dispatcher(self.state, printer=lambda value, newline: self.printed.append((value, newline)))

    def push(self, *numbers):
        for n in numbers:
            self.state.stack.push(make_int(n) if isinstance(n, int) else n)

    def stackValues(self):
        return [v.value for v in self.state.stack]


class TestActions(DispatchTest):
    def testLexerHandoff(self):
        for ch in "0123456789ABCDEF_.":
            assert self.d.dispatch(ch, None) == ACTION_INT
        assert self.d.dispatch("[", "x") == ACTION_STR

    def testBlankAndComment(self):
        for ch in " \t\n":
            assert self.d.dispatch(ch, None) == ACTION_OKAY
        assert self.d.dispatch("#", " ") == ACTION_COMMENT

    def testExecuteTop(self):
        assert self.d.dispatch("x", None) == ACTION_EVALTOS

    def testBang(self):
        for ch in "<=>":
            assert self.d.dispatch("!", ch) == ACTION_NEGCMP
        assert self.d.dispatch("!", "l") == ACTION_SYSTEM
        assert self.d.dispatch("!", None) == ACTION_SYSTEM

    def testUnknownCharactersFail(self):
        for ch in "|?eGw@$\x00":
            with self.assertRaises(UnimplementedInstructionError) as ctx:
                self.d.dispatch(ch, None)
            assert ctx.exception.instruction == ch

    def testOperandRequired(self):
        for ch in "lsSL:;<=>":
            self.push(1, 2)
            with self.assertRaises(EndOfInputError):
                self.d.dispatch(ch, None)


class TestComparisons(DispatchTest):
    def testLessThanComparesTopAgainstSecond(self):
        self.push(1, 2)
        assert self.d.dispatch("<", "r") == ACTION_EATONE
        self.push(1, 2)
        assert self.d.dispatch(">", "r") == ACTION_EVALREG
        assert self.stackValues() == []

    def testNegated(self):
        self.push(1, 2)
        assert self.d.dispatch("<", "r", True) == ACTION_EVALREG
        self.push(3, 3)
        assert self.d.dispatch("=", "r", True) == ACTION_EATONE

    def testEqual(self):
        self.push(3, make_flt(3.0))
        assert self.d.dispatch("=", "r") == ACTION_EVALREG


class TestRegisters(DispatchTest):
    def testStoreLoad(self):
        self.push(5)
        assert self.d.dispatch("s", "R") == ACTION_EATONE
        assert self.stackValues() == []
        assert self.d.dispatch("l", "R") == ACTION_EATONE
        assert self.stackValues() == [5]
        assert len(self.state.registers["R"].saved) == 0

    def testLoadMissing(self):
        with self.assertRaises(MissingKeyError):
            self.d.dispatch("l", "Z")
        with self.assertRaises(MissingKeyError):
            self.d.dispatch("L", "Z")

    def testRegisterStack(self):
        self.push(1)
        self.d.dispatch("s", "R")
        self.push(2)
        self.d.dispatch("S", "R")
        assert self.state.registers["R"].value == make_int(2)
        self.d.dispatch("L", "R")
        assert self.stackValues() == [2]
        assert self.state.registers["R"].value == make_int(1)

    def testPushCreatesRegister(self):
        self.push(9)
        self.d.dispatch("S", "n")
        assert self.state.registers["n"].value == make_int(9)


class TestArrays(DispatchTest):
    def testStoreFetch(self):
        self.push(make_str("v"), 3)
        assert self.d.dispatch(":", "A") == ACTION_EATONE
        self.push(3)
        assert self.d.dispatch(";", "A") == ACTION_EATONE
        assert self.state.stack.peek() == make_str("v")

    def testFetchUnset(self):
        self.push(make_str("v"), 3)
        self.d.dispatch(":", "A")
        self.push(4)
        with self.assertRaises(MissingKeyError):
            self.d.dispatch(";", "A")
        self.push(0)
        with self.assertRaises(MissingKeyError):
            self.d.dispatch(";", "B")


class TestParameters(DispatchTest):
    def testInputBaseBounds(self):
        for bad in (1, 17, 0, -2):
            self.push(bad)
            with self.assertRaises(InvalidParameterError):
                self.d.dispatch("i", None)
        self.push(2)
        self.d.dispatch("i", None)
        assert self.state.ibase == 2

    def testOutputBase(self):
        self.push(1)
        with self.assertRaises(InvalidParameterError):
            self.d.dispatch("o", None)
        self.push(100)
        self.d.dispatch("o", None)
        assert self.state.obase == 100

    def testScale(self):
        self.push(-1)
        with self.assertRaises(InvalidParameterError):
            self.d.dispatch("k", None)
        self.push(5)
        self.d.dispatch("k", None)
        self.d.dispatch("K", None)
        self.d.dispatch("I", None)
        self.d.dispatch("O", None)
        assert self.stackValues() == [10, 10, 5]


class TestQuit(DispatchTest):
    def testQuitOne(self):
        assert self.d.dispatch("q", None) == ACTION_QUIT
        assert self.state.unwind_depth == 1

    def testQuitLevels(self):
        self.push(3)
        assert self.d.dispatch("Q", None) == ACTION_QUIT
        assert self.state.unwind_depth == 2

    def testQuitLevelsMustBePositive(self):
        self.push(0)
        with self.assertRaises(InvalidParameterError):
            self.d.dispatch("Q", None)


class TestStackInstructions(DispatchTest):
    def testDivmod(self):
        self.push(13, 4)
        self.d.dispatch("~", None)
        assert self.stackValues() == [1, 3]

    def testDuplicateSwapDepth(self):
        self.push(1, 2)
        self.d.dispatch("r", None)
        assert self.stackValues() == [1, 2]
        self.d.dispatch("d", None)
        self.d.dispatch("z", None)
        assert self.stackValues() == [3, 1, 1, 2]
        self.d.dispatch("c", None)
        assert self.stackValues() == []

    def testToChar(self):
        self.push(97)
        self.d.dispatch("a", None)
        assert self.state.stack.peek() == make_str("a")

    def testLength(self):
        self.push(255)
        self.d.dispatch("Z", None)
        assert self.state.stack.pop() == make_int(3)
        self.state.obase = 16
        self.push(-255)
        self.d.dispatch("Z", None)
        assert self.state.stack.pop() == make_int(3)
        self.push(make_str("hello"))
        self.d.dispatch("Z", None)
        assert self.state.stack.pop() == make_int(5)
        self.push(make_flt(-12.5))
        self.d.dispatch("Z", None)
        assert self.state.stack.pop() == make_int(4)

    def testScaleOf(self):
        self.push(make_str("s"))
        self.d.dispatch("X", None)
        assert self.stackValues() == [0]
        with self.assertRaises(UnimplementedInstructionError):
            self.d.dispatch("X", None)


class TestOutput(DispatchTest):
    def testDump(self):
        self.push(65, make_str("hi"))
        self.d.dispatch("P", None)
        self.d.dispatch("P", None)
        assert self.printed == [(make_str("hi"), False), (make_str("A"), False)]
        assert self.stackValues() == []

    def testPrintPeekAndPop(self):
        self.push(7)
        self.d.dispatch("p", None)
        assert self.stackValues() == [7]
        self.d.dispatch("n", None)
        assert self.stackValues() == []
        assert self.printed == [(make_int(7), True), (make_int(7), False)]

    def testPrintAll(self):
        self.push(1, 2, 3)
        self.d.dispatch("f", None)
        assert [(v.value, nl) for v, nl in self.printed] == [(3, True), (2, True), (1, True)]
        assert self.stackValues() == [3, 2, 1]


if __name__ == "__main__":
    unittest.main()
