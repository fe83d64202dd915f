from .dice import evaluate, roll, validate
from .errors import DiceError, EmptyInput, EvaluationError, FormulaTooLong, ParseError
from .models import RollResult
from .parser import normalize, parse

__all__ = [
    "DiceError",
    "EmptyInput",
    "EvaluationError",
    "FormulaTooLong",
    "ParseError",
    "RollResult",
    "evaluate",
    "normalize",
    "parse",
    "roll",
    "validate",
]
