import re

import pytest

from conftest import sample_problem
from mathclicks.models.problems import Problem, ProblemCategory
from mathclicks.models.review import MathFact, Operation
from mathclicks.services.math_facts import (
    GRADE_CONFIGS,
    check_math_fact_answer,
    generate_math_fact,
    generate_math_facts,
    generate_speed_challenge_facts,
    generate_warm_up_facts,
    interleave_math_facts,
    math_fact_to_problem,
    should_interleave_facts,
)

FACT_RE = re.compile(r"^\(?(-?[\d.]+)\)? ([+\-×÷]) \(?(-?[\d.]+)\)? = \?$")


def _evaluate(text):
    m = FACT_RE.match(text)
    assert m, text
    a, op, b = float(m.group(1)), m.group(2), float(m.group(3))
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "×":
        return a * b
    return a / b


@pytest.mark.parametrize("grade", sorted(GRADE_CONFIGS))
def test_facts_answer_their_question(grade):
    for fact in generate_math_facts(grade, 60):
        assert abs(_evaluate(fact.problem_text) - float(fact.answer)) < 1e-9
        assert fact.category == "math_fact"
        assert 1 <= fact.difficulty <= 3


@pytest.mark.parametrize("grade", [4, 5])
def test_no_decimals_or_negatives_in_lower_grades(grade):
    for fact in generate_math_facts(grade, 80):
        assert "." not in fact.problem_text
        assert "-" not in fact.answer


def test_division_is_exact():
    for _ in range(100):
        fact = generate_math_fact(5, Operation.division)
        assert fact.operation == Operation.division
        dividend, divisor = FACT_RE.match(fact.problem_text).group(1, 3)
        assert int(dividend) % int(divisor) == 0
        assert int(fact.answer) == int(dividend) // int(divisor)


def test_operation_focus():
    facts = generate_math_facts(4, 20, "multiplication")
    assert all(f.operation == Operation.multiplication for f in facts)


def test_no_duplicate_questions():
    facts = generate_math_facts(8, 40)
    assert len({f.problem_text for f in facts}) == 40


def test_duplicates_allowed_when_grade_runs_out():
    # 4e : seulement 8 x 8 = 64 multiplications distinctes
    facts = generate_math_facts(4, 100, Operation.multiplication)
    assert len(facts) == 100


def test_warm_up_and_speed_challenge_sizes():
    assert len(generate_warm_up_facts(6, 2)) == 40
    assert len(generate_speed_challenge_facts(7)) == 40


def test_unsupported_grade():
    with pytest.raises(ValueError):
        generate_math_fact(3)


def _fact(answer):
    return MathFact(id="mf_1", problem_text="?", answer=answer, operation=Operation.addition, difficulty=1)


def test_check_math_fact_answer():
    assert check_math_fact_answer(_fact("12"), " 1 2 ")
    assert check_math_fact_answer(_fact("2.5"), "2.50")
    assert check_math_fact_answer(_fact("-3"), "-3")
    assert not check_math_fact_answer(_fact("2.5"), "2.6")
    assert not check_math_fact_answer(_fact("12"), "twelve")


def test_math_fact_to_problem():
    fact = _fact("7")
    problem = math_fact_to_problem(fact)
    assert problem.category == ProblemCategory.math_fact
    assert problem.acceptable_answers == ["7"]
    assert problem.tier == 1


def test_interleave_positions():
    lessons = [Problem.model_validate(sample_problem(f"p{i}")) for i in range(7)]
    out = interleave_math_facts(lessons, 6, interval=3)

    categories = [p.category for p in out]
    assert len(out) == 9
    assert categories[3] == ProblemCategory.math_fact
    assert categories[7] == ProblemCategory.math_fact
    assert [p.id for p in out if p.category == ProblemCategory.lesson] == [p.id for p in lessons]


def test_interleave_never_ends_with_a_fact():
    lessons = [Problem.model_validate(sample_problem(f"p{i}")) for i in range(6)]
    out = interleave_math_facts(lessons, 6, interval=3)
    assert len(out) == 7
    assert out[-1].category == ProblemCategory.lesson
    assert interleave_math_facts([], 6) == []


def test_should_interleave_facts():
    assert should_interleave_facts(6)
    assert not should_interleave_facts(3)
    assert not should_interleave_facts(6, interleave_enabled=False)
    assert should_interleave_facts(3, interleave_enabled=True)
