from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias, Union


FATE: str = "fate"
PERCENTILE: str = "percentile"

Sides: TypeAlias = Union[int, Literal["fate", "percentile"]]
Operator: TypeAlias = Literal["+", "-", "*", "/"]
ModifierKind: TypeAlias = Literal[
    "keep-highest",
    "keep-lowest",
    "drop-highest",
    "drop-lowest",
    "explode",
    "reroll",
    "min",
    "max",
]


@dataclass(frozen=True)
class NumberLiteral:
    value: int


@dataclass(frozen=True)
class DiceTerm:
    count: int
    sides: Sides

    @property
    def faces(self) -> tuple[int, int]:
        """Inclusive (lowest, highest) face of one die."""
        if self.sides == FATE:
            return -1, 1
        if self.sides == PERCENTILE:
            return 1, 100
        return 1, int(self.sides)

    def notation(self) -> str:
        if self.sides == FATE:
            return f"{self.count}dF"
        if self.sides == PERCENTILE:
            return f"{self.count}d%"
        return f"{self.count}d{self.sides}"


@dataclass(frozen=True)
class Modifier:
    target: DiceTerm | Modifier
    kind: ModifierKind
    operand: int | None = None

    @property
    def term(self) -> DiceTerm:
        """The dice term at the bottom of a modifier chain."""
        node: DiceTerm | Modifier = self
        while isinstance(node, Modifier):
            node = node.target
        return node


@dataclass(frozen=True)
class BinaryOp:
    op: Operator
    left: Expression
    right: Expression


Expression: TypeAlias = Union[NumberLiteral, DiceTerm, BinaryOp, Modifier]


@dataclass(frozen=True)
class DieRoll:
    face: int
    value: int
    kept: bool = True
    exploded: bool = False
    rerolled: bool = False

    def describe(self) -> str:
        text = str(self.face)
        if self.exploded:
            text += "!"
        if not self.kept:
            text += "d"
        if self.rerolled:
            text += "r"
        if self.value != self.face:
            text += f"[{self.value}]"
        return text


@dataclass(frozen=True)
class RollResult:
    total: int
    rolls: str
    formula: str
    groups: tuple[str, ...] = field(default=(), compare=False)

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "rolls": self.rolls,
            "formula": self.formula,
            "groups": list(self.groups),
        }
