from __future__ import annotations

import re

from .errors import EmptyInput, FormulaTooLong, ParseError
from .models import FATE, PERCENTILE, BinaryOp, DiceTerm, Expression, Modifier, ModifierKind, NumberLiteral


MAX_FORMULA_LENGTH = 100
MAX_DICE = 1000

_QUOTES = "'\""

_DIGITS_RE = re.compile(r"^\d+$", re.ASCII)
_BARE_DIE_RE = re.compile(r"^d\d", re.ASCII)
_INT_RE = re.compile(r"\d+", re.ASCII)

# Longest tokens first so that "kh" wins over "k" and "min" is not read as anything else.
_MODIFIER_TOKENS: list[tuple[str, ModifierKind]] = [
    ("min", "min"),
    ("max", "max"),
    ("kh", "keep-highest"),
    ("kl", "keep-lowest"),
    ("dh", "drop-highest"),
    ("dl", "drop-lowest"),
    ("k", "keep-highest"),
    ("!", "explode"),
    ("r", "reroll"),
]

_KEEP_DROP: set[str] = {"keep-highest", "keep-lowest", "drop-highest", "drop-lowest"}


def normalize(text: str, max_length: int = MAX_FORMULA_LENGTH) -> str:
    """Rewrite shorthand input into canonical notation.

    ``"20"`` becomes ``"1d20"`` and ``"d20+1"`` becomes ``"1d20+1"``. Anything
    else (``"1+2"``, ``"4d6kh3"``) is returned as-is apart from trimming.
    """

    if len(text) > max_length:
        raise FormulaTooLong(f"Formula is {len(text)} characters long, the limit is {max_length}.")

    s = text.strip().strip(_QUOTES).strip()
    if not s:
        raise EmptyInput("Empty dice formula. Example: '2d6' or '1d20+5'.")

    if _DIGITS_RE.match(s):
        return f"1d{s}"
    if _BARE_DIE_RE.match(s):
        return f"1{s}"
    return s


class _Parser:
    """Recursive-descent parser over a canonical formula.

    Whitespace between tokens is skipped; ``pos`` always points at the next
    unread character.
    """

    def __init__(self, text: str, max_dice: int) -> None:
        self.text = text
        self.pos = 0
        self.max_dice = max_dice

    def error(self, message: str, start: int | None = None, end: int | None = None) -> ParseError:
        start = self.pos if start is None else start
        end = start + 1 if end is None else end
        fragment = self.text[start:end] or self.text[start - 1 : start]
        return ParseError(message, fragment=fragment, position=start)

    def skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_space()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def read_int(self) -> int | None:
        m = _INT_RE.match(self.text, self.pos)
        if not m:
            return None
        self.pos = m.end()
        return int(m.group())

    def parse(self) -> Expression:
        node = self.expression()
        if self.peek():
            raise self.error("Unexpected token")
        return node

    def expression(self) -> Expression:
        node = self.product()
        while self.peek() in ("+", "-"):
            op = self.text[self.pos]
            self.pos += 1
            node = BinaryOp(op, node, self.product())
        return node

    def product(self) -> Expression:
        node = self.factor()
        while self.peek() in ("*", "/"):
            op = self.text[self.pos]
            op_pos = self.pos
            self.pos += 1
            right = self.factor()
            if op == "/" and isinstance(right, NumberLiteral) and right.value == 0:
                raise self.error("Division by zero", op_pos, self.pos)
            node = BinaryOp(op, node, right)
        return node

    def factor(self) -> Expression:
        ch = self.peek()
        start = self.pos

        if ch == "(":
            self.pos += 1
            node = self.expression()
            if self.peek() != ")":
                raise self.error("Unbalanced parenthesis", start)
            self.pos += 1
            return node

        if not ch:
            raise self.error("Formula ends where a number or dice term was expected", start - 1, start)

        count = self.read_int()
        if self.pos < len(self.text) and self.text[self.pos] in "dD":
            self.pos += 1
            return self.dice(1 if count is None else count, start)

        if count is None:
            raise self.error("Unknown token")
        return NumberLiteral(count)

    def dice(self, count: int, start: int) -> Expression:
        if count <= 0:
            raise self.error("Dice count must be a positive integer", start, self.pos)
        if count > self.max_dice:
            raise self.error(f"Too many dice (max {self.max_dice})", start, self.pos)

        ch = self.text[self.pos] if self.pos < len(self.text) else ""
        if ch in ("F", "f"):
            self.pos += 1
            term = DiceTerm(count, FATE)
        elif ch == "%":
            self.pos += 1
            term = DiceTerm(count, PERCENTILE)
        else:
            sides = self.read_int()
            if sides is None:
                raise self.error("Dice sides must be a positive integer, 'F' or '%'", start, self.pos + 1)
            if sides <= 0:
                raise self.error("Dice sides must be a positive integer", start, self.pos)
            term = DiceTerm(count, sides)

        node: DiceTerm | Modifier = term
        while True:
            modifier = self.modifier(node, term)
            if modifier is None:
                return node
            node = modifier

    def modifier(self, target: DiceTerm | Modifier, term: DiceTerm) -> Modifier | None:
        start = self.pos
        rest = self.text[self.pos : self.pos + 3].lower()
        for token, kind in _MODIFIER_TOKENS:
            if rest.startswith(token):
                break
        else:
            return None

        self.pos += len(token)
        operand = self.read_int()
        low, high = term.faces

        if kind in _KEEP_DROP:
            operand = 1 if operand is None else operand
            if operand <= 0 or operand > term.count:
                raise self.error(f"'{token}' needs a number between 1 and {term.count}", start, self.pos)
        elif kind == "explode":
            if operand is not None:
                raise self.error("Explode does not take a number", start, self.pos)
        elif kind == "reroll":
            operand = low if operand is None else operand
            if not low <= operand <= high:
                raise self.error(f"Reroll face must be between {low} and {high}", start, self.pos)
        elif operand is None:
            raise self.error(f"'{token}' needs a number", start, self.pos)

        return Modifier(target, kind, operand)


def parse(canonical: str, max_dice: int = MAX_DICE) -> Expression:
    """Parse a canonical formula into an expression tree. Raises ParseError."""

    if not canonical or not canonical.strip():
        raise EmptyInput("Empty dice formula. Example: '2d6' or '1d20+5'.")
    return _Parser(canonical, max_dice).parse()


def notation(node: Expression) -> str:
    """Render an expression tree back into compact notation."""

    if isinstance(node, NumberLiteral):
        return str(node.value)
    if isinstance(node, DiceTerm):
        return node.notation()
    if isinstance(node, Modifier):
        inner = notation(node.target)
        suffix = _MODIFIER_SUFFIX[node.kind]
        if node.kind == "explode":
            return inner + suffix
        # Rerolling the lowest face is the default, and fate faces can be negative.
        if node.kind == "reroll" and node.operand == node.term.faces[0]:
            return inner + suffix
        return f"{inner}{suffix}{node.operand}"
    return f"{_wrap(node.left, node, False)}{node.op}{_wrap(node.right, node, True)}"


_MODIFIER_SUFFIX: dict[str, str] = {
    "keep-highest": "kh",
    "keep-lowest": "kl",
    "drop-highest": "dh",
    "drop-lowest": "dl",
    "explode": "!",
    "reroll": "r",
    "min": "min",
    "max": "max",
}

_PRECEDENCE: dict[str, int] = {"+": 1, "-": 1, "*": 2, "/": 2}


def needs_parens(child: Expression, parent: BinaryOp, right: bool) -> bool:
    if not isinstance(child, BinaryOp):
        return False
    child_prec = _PRECEDENCE[child.op]
    parent_prec = _PRECEDENCE[parent.op]
    if child_prec != parent_prec:
        return child_prec < parent_prec
    # Equal precedence groups left to right, so only a right-hand child can need them.
    return right


def _wrap(child: Expression, parent: BinaryOp, right: bool) -> str:
    text = notation(child)
    return f"({text})" if needs_parens(child, parent, right) else text
