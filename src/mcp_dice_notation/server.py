from __future__ import annotations

import logging
import secrets
from typing import Any

from mcp.server.fastmcp import FastMCP

from .commands import do_dice_roll, format_roll_message
from .config import settings
from .dice import evaluate, validate
from .errors import DiceError
from .parser import normalize, notation, parse


mcp = FastMCP("mcp-dice-notation")


def roll_the_dice(formula: str = "", who: str | None = None) -> str:
    """Rolls the dice using the provided formula and returns the numeric result.

    Supports various formats like 2d6 (basic), 4d6kh3 (keep highest 3),
    2d20! (exploding), or 1d20+5 (with modifier). Use when it is necessary to
    roll the dice to determine the outcome of an action or when the user
    requests it.
    """

    formula = formula or "d20"
    result_text = do_dice_roll(formula, actor=who, quiet=True, cfg=settings)
    return format_roll_message(who, formula, result_text)


if settings.function_tool_enabled:
    mcp.add_tool(roll_the_dice, name="roll_dice")


@mcp.tool()
def roll_formula(formula: str) -> dict[str, Any]:
    """Roll a dice formula and return the total with a per-die breakdown.

    Input: formula (string), e.g. "4d6kh3" or "2d20!+1d4-2"
    Output: {total, rolls, formula, groups, expression}

    Raises a hard error (exception) on invalid input.
    """

    try:
        canonical = normalize(formula, settings.max_formula_length)
        tree = parse(canonical, settings.max_dice)
        result = evaluate(tree, secrets.SystemRandom(), settings.explode_limit, formula=canonical)
    except DiceError as e:
        # Fail-fast: surface stable error codes in the message.
        raise ValueError(str(e)) from None

    payload = result.as_dict()
    payload["expression"] = notation(tree)
    return payload


@mcp.tool()
def validate_formula(formula: str) -> bool:
    """Check whether a dice formula is well-formed without rolling it."""

    return validate(formula, max_length=settings.max_formula_length, max_dice=settings.max_dice)


@mcp.tool()
def normalize_formula(formula: str) -> str:
    """Rewrite shorthand such as "20" or "d20" into canonical notation ("1d20")."""

    try:
        return normalize(formula, settings.max_formula_length)
    except DiceError as e:
        raise ValueError(str(e)) from None


def run() -> None:
    # stdout carries the MCP stdio transport, so logs go to stderr.
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    mcp.run()


if __name__ == "__main__":
    run()
