from __future__ import annotations

import logging
import secrets
from dataclasses import replace
from typing import Protocol

from .errors import DiceError, EvaluationError
from .models import BinaryOp, DiceTerm, DieRoll, Expression, Modifier, NumberLiteral, RollResult
from .parser import MAX_DICE, MAX_FORMULA_LENGTH, needs_parens, normalize, notation, parse


logger = logging.getLogger(__name__)

EXPLODE_LIMIT = 100


class RandomSource(Protocol):
    def randint(self, a: int, b: int) -> int: ...


def _roll_term(term: DiceTerm, rng: RandomSource) -> list[DieRoll]:
    low, high = term.faces
    rolls: list[DieRoll] = []
    for _ in range(term.count):
        face = rng.randint(low, high)
        rolls.append(DieRoll(face=face, value=face))
    return rolls


def _keep_drop(dice: list[DieRoll], kind: str, n: int) -> list[DieRoll]:
    # Stable sort: among equal values the earlier die counts as lower.
    order = sorted((i for i, d in enumerate(dice) if d.kept), key=lambda i: dice[i].value)
    n = min(n, len(order))

    if kind == "keep-highest":
        dropped = order[: len(order) - n]
    elif kind == "keep-lowest":
        dropped = order[n:]
    elif kind == "drop-highest":
        dropped = order[len(order) - n :]
    else:
        dropped = order[:n]

    excluded = set(dropped)
    return [replace(d, kept=False) if i in excluded else d for i, d in enumerate(dice)]


def _explode(dice: list[DieRoll], term: DiceTerm, rng: RandomSource, limit: int) -> list[DieRoll]:
    low, high = term.faces
    out: list[DieRoll] = []
    for die in dice:
        chain = 0
        while die.kept and not die.exploded and die.face == high:
            if chain >= limit:
                raise EvaluationError(
                    f"{term.notation()}! exploded more than {limit} times in a row. The formula probably never stops exploding."
                )
            chain += 1
            out.append(replace(die, exploded=True))
            face = rng.randint(low, high)
            die = DieRoll(face=face, value=face)
        out.append(die)
    return out


def _reroll(dice: list[DieRoll], term: DiceTerm, rng: RandomSource, face: int) -> list[DieRoll]:
    low, high = term.faces
    out: list[DieRoll] = []
    for die in dice:
        # An exploded die already earned its bonus die; its face stays on record.
        if die.kept and not die.exploded and die.face == face:
            new_face = rng.randint(low, high)
            die = replace(die, face=new_face, value=new_face, rerolled=True)
        out.append(die)
    return out


def _roll_group(node: DiceTerm | Modifier, rng: RandomSource, explode_limit: int) -> list[DieRoll]:
    if isinstance(node, DiceTerm):
        return _roll_term(node, rng)

    dice = _roll_group(node.target, rng, explode_limit)
    term = node.term
    operand = node.operand

    if node.kind == "explode":
        return _explode(dice, term, rng, explode_limit)
    if node.kind == "reroll":
        return _reroll(dice, term, rng, operand)
    if node.kind == "min":
        return [replace(d, value=max(d.value, operand)) for d in dice]
    if node.kind == "max":
        return [replace(d, value=min(d.value, operand)) for d in dice]
    return _keep_drop(dice, node.kind, operand)


def _divide(left: int, right: int) -> int:
    if right == 0:
        raise EvaluationError(f"Division by zero ({left} / {right}).")
    quotient = abs(left) // abs(right)
    return -quotient if (left < 0) != (right < 0) else quotient


def _evaluate(node: Expression, rng: RandomSource, explode_limit: int) -> tuple[int, list[str]]:
    if isinstance(node, NumberLiteral):
        return node.value, [str(node.value)]

    if isinstance(node, (DiceTerm, Modifier)):
        dice = _roll_group(node, rng, explode_limit)
        subtotal = sum(d.value for d in dice if d.kept)
        return subtotal, [", ".join(d.describe() for d in dice)]

    left, left_trace = _evaluate(node.left, rng, explode_limit)
    right, right_trace = _evaluate(node.right, rng, explode_limit)

    if needs_parens(node.left, node, False):
        left_trace = ["(", *left_trace, ")"]
    if needs_parens(node.right, node, True):
        right_trace = ["(", *right_trace, ")"]

    if node.op == "+":
        value = left + right
    elif node.op == "-":
        value = left - right
    elif node.op == "*":
        value = left * right
    else:
        value = _divide(left, right)

    return value, [*left_trace, node.op, *right_trace]


def _join_trace(groups: list[str]) -> str:
    return " ".join(groups).replace("( ", "(").replace(" )", ")")


def evaluate(
    tree: Expression,
    rng: RandomSource,
    explode_limit: int = EXPLODE_LIMIT,
    formula: str | None = None,
) -> RollResult:
    """Roll every dice term of ``tree`` against ``rng`` and total the result.

    Raises EvaluationError when a die keeps exploding past ``explode_limit``
    or a rolled value ends up as a divisor of zero.
    """

    total, groups = _evaluate(tree, rng, explode_limit)
    return RollResult(
        total=total,
        rolls=_join_trace(groups),
        formula=formula if formula is not None else notation(tree),
        groups=tuple(groups),
    )


def roll(
    formula: str,
    rng: RandomSource | None = None,
    *,
    max_length: int = MAX_FORMULA_LENGTH,
    explode_limit: int = EXPLODE_LIMIT,
    max_dice: int = MAX_DICE,
) -> RollResult:
    """Normalize, parse, then roll. Raises a DiceError subclass on failure."""

    canonical = normalize(formula, max_length)
    tree = parse(canonical, max_dice)

    # A fresh source per call keeps concurrent rolls independent.
    if rng is None:
        rng = secrets.SystemRandom()
    return evaluate(tree, rng, explode_limit, formula=canonical)


def validate(formula: str, *, max_length: int = MAX_FORMULA_LENGTH, max_dice: int = MAX_DICE) -> bool:
    """Check grammar and shape only. Never draws random numbers."""

    try:
        parse(normalize(formula, max_length), max_dice)
    except DiceError as e:
        logger.debug("Invalid formula %r: %s", formula, e)
        return False
    return True
