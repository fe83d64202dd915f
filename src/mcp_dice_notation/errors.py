from __future__ import annotations


class DiceError(ValueError):
    """User-facing errors (fail-fast, no partial result is ever returned)."""

    code = "DICE_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(f"[{self.code}] {message}")


class FormulaTooLong(DiceError):
    code = "FORMULA_TOO_LONG"


class EmptyInput(DiceError):
    code = "EMPTY_INPUT"


class ParseError(DiceError):
    """Malformed notation. ``fragment`` is the offending piece of the formula."""

    code = "PARSE_ERROR"

    def __init__(self, message: str, fragment: str = "", position: int = 0) -> None:
        self.fragment = fragment
        self.position = position
        if fragment:
            message = f"{message} at {position}: '{fragment}'"
        super().__init__(message)


class EvaluationError(DiceError):
    code = "EVALUATION_ERROR"
