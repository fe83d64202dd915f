"""Chat-facing wrappers around the dice engine.

These turn engine results and failures into the plain strings a host chat
expects. The sentinel strings are matched literally by callers, so they must
never change.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from .config import Settings, settings as default_settings
from .dice import RandomSource, roll, validate
from .errors import DiceError
from .models import RollResult


logger = logging.getLogger(__name__)

INVALID_FORMULA = "[Invalid dice formula]"
ROLL_FAILED = "[Roll failed]"
NOT_LOADED = "[Dice roller not loaded]"

EMPTY_MACRO = "[Error: Empty dice formula]"

_MACRO_RE = re.compile(r"\{\{rolls?:(?P<args>[^}]*)\}\}")


def format_result(result: RollResult) -> str:
    return f"{result.total} ({result.rolls})"


def format_roll_message(actor: str | None, formula: str, result_text: str) -> str:
    if actor:
        return f"{actor} rolls {formula}. The result is: {result_text}"
    return f"The result of a {formula} roll is: {result_text}"


def _limits(cfg: Settings) -> dict[str, int]:
    return {"max_length": cfg.max_formula_length, "max_dice": cfg.max_dice}


def do_dice_roll(
    formula: str,
    *,
    actor: str | None = None,
    quiet: bool = False,
    cfg: Settings | None = None,
    send: Callable[[str], None] | None = None,
    rng: RandomSource | None = None,
) -> str:
    """Roll ``formula`` and return ``"<total> (<rolls>)"`` or a sentinel.

    Unless ``quiet``, the full chat line is also handed to ``send``.
    """

    cfg = cfg or default_settings
    value = formula.strip() if isinstance(formula, str) else ""
    if not value:
        return ""
    if not cfg.enabled:
        return NOT_LOADED

    if not validate(value, **_limits(cfg)):
        logger.warning("Invalid dice formula: %r", value)
        return INVALID_FORMULA

    try:
        result = roll(value, rng, explode_limit=cfg.explode_limit, **_limits(cfg))
    except DiceError as e:
        logger.warning("Failed to roll formula %r: %s", value, e)
        return ROLL_FAILED

    result_text = format_result(result)
    if not quiet and send is not None:
        send(format_roll_message(actor or cfg.default_actor, value, result_text))
    return result_text


def roll_macro(args: object, *, cfg: Settings | None = None, rng: RandomSource | None = None) -> str:
    """Body of the ``{{rolls:<formula>}}`` macro."""

    cfg = cfg or default_settings
    text = str(args if args is not None else "").strip()
    if not text:
        return EMPTY_MACRO
    if not cfg.enabled:
        return NOT_LOADED

    formula = text.replace('"', "").replace("'", "")
    if not validate(formula, **_limits(cfg)):
        logger.debug("Invalid roll formula: %s", formula)
        return f'[Error: Invalid formula "{formula}"]'

    try:
        result = roll(formula, rng, explode_limit=cfg.explode_limit, **_limits(cfg))
    except DiceError as e:
        logger.warning("Failed to roll formula %r: %s", formula, e)
        return f"[Error: Failed to roll {formula}]"
    return format_result(result)


def expand_roll_macros(text: str, *, cfg: Settings | None = None, rng: RandomSource | None = None) -> str:
    """Replace every ``{{rolls:<formula>}}`` (or ``{{roll:...}}``) in ``text``."""

    return _MACRO_RE.sub(lambda m: roll_macro(m.group("args"), cfg=cfg, rng=rng), text)
