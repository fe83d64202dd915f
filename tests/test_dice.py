import secrets

import pytest

from mcp_dice_notation.dice import evaluate, roll, validate
from mcp_dice_notation.errors import EmptyInput, EvaluationError, FormulaTooLong, ParseError
from mcp_dice_notation.models import DiceTerm, Modifier
from mcp_dice_notation.parser import parse


@pytest.mark.parametrize(
    ("formula", "faces", "total", "rolls"),
    [
        ("1d20+5", [14], 19, "14 + 5"),
        ("2d6", [2, 5], 7, "2, 5"),
        ("4d6kh3", [3, 6, 1, 5], 14, "3, 6, 1d, 5"),
        ("4d6dl1", [3, 6, 1, 5], 14, "3, 6, 1d, 5"),
        ("4d6kl1", [3, 6, 1, 5], 1, "3d, 6d, 1, 5d"),
        ("4d6dh1", [3, 6, 1, 5], 9, "3, 6d, 1, 5"),
        ("3d6kh1", [4, 4, 2], 4, "4d, 4, 2d"),
        ("2d6!", [6, 2, 3], 11, "6!, 3, 2"),
        ("1d6!", [6, 6, 1], 13, "6!, 6!, 1"),
        ("2d6r1", [1, 4, 5], 9, "5r, 4"),
        ("1d6r1", [1, 1], 1, "1r"),
        ("2d6min3", [1, 5], 8, "1[3], 5"),
        ("2d6max4", [1, 5], 5, "1, 5[4]"),
        ("4d6dl1min2", [1, 1, 4, 6], 12, "1d[2], 1[2], 4, 6"),
        ("4dF", [-1, 0, 1, 1], 1, "-1, 0, 1, 1"),
        ("1d%", [100], 100, "100"),
        ("2d20! + 1d4 - 2", [20, 7, 3, 4], 32, "20!, 3, 7 + 4 - 2"),
        ("1+2", [], 3, "1 + 2"),
        ("2*(1+3)", [], 8, "2 * (1 + 3)"),
        ("7/2", [], 3, "7 / 2"),
        ("(1d4-8)/2", [1], -3, "(1 - 8) / 2"),
        ("10-(2-3)", [], 11, "10 - (2 - 3)"),
        ("1d6!r6", [6, 2], 8, "6!, 2"),
        ("1d6r6!", [6, 6, 3], 9, "6!r, 3"),
    ],
)
def test_roll_totals_and_trace(scripted, formula, faces, total, rolls):
    rng = scripted(faces)
    result = roll(formula, rng)

    assert result.total == total
    assert result.rolls == rolls
    assert result.formula == formula
    assert rng.faces == []


def test_trace_groups_follow_source_order(scripted):
    result = roll("1d20+5", scripted([14]))
    assert result.groups == ("14", "+", "5")
    assert result.as_dict() == {"total": 19, "rolls": "14 + 5", "formula": "1d20+5", "groups": ["14", "+", "5"]}


def test_special_dice_draw_from_their_face_range(scripted):
    rng = scripted([-1, 1, 50])
    roll("2dF+1d%", rng)
    assert rng.calls == [(-1, 1), (-1, 1), (1, 100)]


def test_shorthand_matches_canonical_formula(scripted):
    assert roll("20", scripted([7])) == roll("1d20", scripted([7]))
    assert roll("d20+2", scripted([7])) == roll("1d20+2", scripted([7]))
    assert roll("20", scripted([7])).formula == "1d20"


@pytest.mark.parametrize("formula", ["2d20!", "1d1!", "3dF!"])
def test_endless_explosions_hit_the_limit(max_random, formula):
    with pytest.raises(EvaluationError) as exc:
        roll(formula, max_random)
    assert str(exc.value).startswith("[EVALUATION_ERROR]")


def test_explode_limit_is_configurable(scripted):
    with pytest.raises(EvaluationError):
        roll("1d6!", scripted([6, 6, 6]), explode_limit=2)
    assert roll("1d6!", scripted([6, 6, 2]), explode_limit=2).total == 14


def test_rolled_zero_divisor_fails_at_evaluation(scripted):
    with pytest.raises(EvaluationError, match="Division by zero"):
        roll("6/(1d3-1)", scripted([1]))


def test_evaluate_without_formula_renders_tree(scripted):
    tree = Modifier(DiceTerm(count=4, sides=6), "keep-highest", 3)
    result = evaluate(tree, scripted([1, 2, 3, 4]))
    assert result.formula == "4d6kh3"
    assert result.total == 9


@pytest.mark.parametrize(
    ("formula", "error"),
    [
        ("", EmptyInput),
        ("   ", EmptyInput),
        (("1+" * 51)[:101], FormulaTooLong),
        ("2d6x", ParseError),
        ("4d6kh5", ParseError),
        ("1/0", ParseError),
    ],
)
def test_roll_failures(formula, error):
    with pytest.raises(error):
        roll(formula)


@pytest.mark.parametrize(
    ("formula", "low", "high"),
    [
        ("3d6", 3, 18),
        ("1d20", 1, 20),
        ("4dF", -4, 4),
        ("2d%", 2, 200),
        ("20", 1, 20),
    ],
)
def test_unmodified_totals_stay_in_range(formula, low, high):
    for _ in range(50):
        assert low <= roll(formula).total <= high


def test_keep_highest_counts_three_of_four():
    for _ in range(50):
        result = roll("4d6kh3")
        dice = result.rolls.split(", ")
        dropped = [d for d in dice if d.endswith("d")]
        kept = [int(d) for d in dice if not d.endswith("d")]

        assert len(dice) == 4
        assert len(dropped) == 1
        assert result.total == sum(kept)
        assert int(dropped[0][:-1]) <= min(kept)


def test_roll_uses_a_fresh_system_random(monkeypatch):
    created = []
    real = secrets.SystemRandom

    def factory(*args, **kwargs):
        created.append(1)
        return real(*args, **kwargs)

    monkeypatch.setattr(secrets, "SystemRandom", factory)
    roll("1d6")
    roll("1d6")
    assert len(created) == 2


@pytest.mark.parametrize(
    ("formula", "expected"),
    [
        ("2d6", True),
        ("20", True),
        ("d20", True),
        ("1+2", True),
        ("4d6kh3", True),
        ("2d20!", True),
        ("6/(1d3-1)", True),
        ("", False),
        ("   ", False),
        ("2d6x", False),
        ("２d６", False),
        ("٢٠", False),
        (("1+" * 51)[:101], False),
    ],
)
def test_validate_matches_parse_outcome(formula, expected):
    assert validate(formula) is expected


def test_validate_respects_limits():
    assert validate("1d20+5", max_length=5) is False
    assert validate("30d6", max_dice=20) is False
    assert parse("30d6") == DiceTerm(count=30, sides=6)
