import random
import string
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from mathclicks.models.problems import AnswerType, Problem, ProblemCategory
from mathclicks.models.review import MathFact, Operation
from mathclicks.utils.text_utils import parse_leading_float, strip_whitespace

MIXED = "mixed"
SUPPORTED_GRADES = (4, 5, 6, 7, 8)
FACTS_PER_MINUTE = 20
SPEED_CHALLENGE_COUNT = 40
FACT_TOLERANCE = 0.001
MAX_DRAWS_PER_FACT = 20


@dataclass(frozen=True)
class GradeConfig:
    add_max1: int
    add_max2: int
    sub_max: int
    mul_max1: int
    mul_max2: int
    div_max_divisor: int
    div_max_quotient: int
    include_decimals: bool
    include_negatives: bool


GRADE_CONFIGS: Dict[int, GradeConfig] = {
    4: GradeConfig(99, 99, 100, 9, 9, 9, 9, False, False),
    5: GradeConfig(999, 99, 999, 12, 12, 12, 12, False, False),
    6: GradeConfig(999, 999, 999, 15, 12, 12, 15, True, False),
    7: GradeConfig(999, 999, 999, 15, 15, 15, 15, True, True),
    8: GradeConfig(999, 999, 999, 20, 15, 15, 20, True, True),
}


def _grade_config(grade_level: int) -> GradeConfig:
    if grade_level not in GRADE_CONFIGS:
        raise ValueError(f"Niveau non supporté : {grade_level} (4 à 8)")
    return GRADE_CONFIGS[grade_level]


def _fact_id() -> str:
    suffix = "".join(random.choice(string.digits + string.ascii_lowercase) for _ in range(9))
    return f"mf_{int(time.time() * 1000)}_{suffix}"


def _paren(n: Union[int, float]) -> str:
    return f"({n})" if n < 0 else str(n)


def _fmt(n: Union[int, float]) -> str:
    # 4.0 -> "4", -3.0 -> "-3"
    if isinstance(n, float) and n.is_integer():
        return str(int(n))
    return str(n)


def _addition(cfg: GradeConfig) -> MathFact:
    a = random.randint(1, cfg.add_max1)
    b = random.randint(1, cfg.add_max2)
    if cfg.include_negatives and random.random() < 0.3:
        if random.random() < 0.5:
            a = -a
        else:
            b = -b
    return MathFact(
        id=_fact_id(),
        problem_text=f"{a} + {_paren(b)} = ?",
        answer=str(a + b),
        operation=Operation.addition,
        difficulty=2 if abs(a) > 100 or abs(b) > 100 else 1,
    )


def _subtraction(cfg: GradeConfig) -> MathFact:
    a = random.randint(1, cfg.sub_max)
    b = random.randint(1, a)
    # résultats négatifs autorisés à partir de la 7e
    if cfg.include_negatives and random.random() < 0.3:
        b = random.randint(1, cfg.sub_max)
    return MathFact(
        id=_fact_id(),
        problem_text=f"{a} - {b} = ?",
        answer=str(a - b),
        operation=Operation.subtraction,
        difficulty=2 if a > 100 else 1,
    )


def _multiplication(cfg: GradeConfig) -> MathFact:
    a = random.randint(2, cfg.mul_max1)
    b = random.randint(2, cfg.mul_max2)
    if cfg.include_negatives and random.random() < 0.2:
        if random.random() < 0.5:
            a = -a
        else:
            b = -b
    return MathFact(
        id=_fact_id(),
        problem_text=f"{_paren(a)} × {_paren(b)} = ?",
        answer=str(a * b),
        operation=Operation.multiplication,
        difficulty=2 if abs(a) > 10 or abs(b) > 10 else 1,
    )


def _division(cfg: GradeConfig) -> MathFact:
    divisor = random.randint(2, cfg.div_max_divisor)
    quotient = random.randint(1, cfg.div_max_quotient)
    dividend = divisor * quotient
    if cfg.include_negatives and random.random() < 0.2:
        dividend = -dividend
    return MathFact(
        id=_fact_id(),
        problem_text=f"{dividend} ÷ {divisor} = ?",
        answer=str(dividend // divisor),
        operation=Operation.division,
        difficulty=2 if divisor > 10 else 1,
    )


def _decimal(cfg: GradeConfig) -> MathFact:
    op = random.choice([Operation.addition, Operation.subtraction, Operation.multiplication])
    # une décimale, calcul en dixièmes pour éviter les erreurs d'arrondi
    a = random.randint(1, 99)
    b = random.randint(1, 99)

    if op == Operation.addition:
        text = f"{a / 10:.1f} + {b / 10:.1f} = ?"
        tenths = a + b
    elif op == Operation.subtraction:
        larger, smaller = max(a, b), min(a, b)
        text = f"{larger / 10:.1f} - {smaller / 10:.1f} = ?"
        tenths = larger - smaller
    else:
        whole = random.randint(2, 9)
        dec = random.randint(1, 9)
        text = f"{whole} × {dec / 10:.1f} = ?"
        tenths = whole * dec

    return MathFact(
        id=_fact_id(),
        problem_text=text,
        answer=_fmt(tenths / 10),
        operation=op,
        difficulty=2,
    )


_GENERATORS = {
    Operation.addition: _addition,
    Operation.subtraction: _subtraction,
    Operation.multiplication: _multiplication,
    Operation.division: _division,
}


def generate_math_fact(grade_level: int, operation: Union[Operation, str, None] = MIXED) -> MathFact:
    cfg = _grade_config(grade_level)

    if operation and operation != MIXED:
        selected = Operation(operation)
    else:
        selected = random.choice(list(Operation))

    if cfg.include_decimals and random.random() < 0.2:
        return _decimal(cfg)

    return _GENERATORS[selected](cfg)


def generate_math_facts(
    grade_level: int,
    count: int,
    operation: Union[Operation, str, None] = MIXED,
) -> List[MathFact]:
    """
    `count` faits sans doublon d'énoncé, tant que le niveau en fournit assez :
    au-delà de MAX_DRAWS_PER_FACT tirages par fait, les doublons sont acceptés.
    """
    facts: List[MathFact] = []
    seen = set()
    draws = 0
    while len(facts) < count:
        fact = generate_math_fact(grade_level, operation)
        draws += 1
        if fact.problem_text not in seen or draws > count * MAX_DRAWS_PER_FACT:
            seen.add(fact.problem_text)
            facts.append(fact)
    return facts


def generate_warm_up_facts(grade_level: int, duration_minutes: int, focus: Union[Operation, str] = MIXED) -> List[MathFact]:
    return generate_math_facts(grade_level, duration_minutes * FACTS_PER_MINUTE, focus)


def generate_speed_challenge_facts(grade_level: int) -> List[MathFact]:
    return generate_math_facts(grade_level, SPEED_CHALLENGE_COUNT, MIXED)


def check_math_fact_answer(fact: MathFact, student_answer: str) -> bool:
    normalized = strip_whitespace(student_answer)
    expected = fact.answer.strip()

    if normalized == expected:
        return True

    student_num = parse_leading_float(normalized)
    expected_num = parse_leading_float(expected)
    if student_num is not None and expected_num is not None:
        return abs(student_num - expected_num) < FACT_TOLERANCE

    return False


def math_fact_to_problem(fact: MathFact) -> Problem:
    return Problem(
        id=fact.id,
        tier=fact.difficulty,
        problem_text=fact.problem_text,
        answer=fact.answer,
        answer_type=AnswerType.integer,
        acceptable_answers=[fact.answer],
        solution_steps=["Calculate the answer"],
        hints=["Take your time and think through each step"],
        category=ProblemCategory.math_fact,
    )


def interleave_math_facts(problems: List[Problem], grade_level: int, interval: int = 3) -> List[Problem]:
    """
    Insère un fait après chaque groupe de `interval` problèmes de leçon
    (jamais après le dernier).
    """
    if not problems:
        return []

    marked = [
        p if p.category else p.model_copy(update={"category": ProblemCategory.lesson})
        for p in problems
    ]

    num_facts = len(problems) // interval
    if num_facts == 0:
        return marked

    facts = generate_math_facts(grade_level, num_facts, MIXED)
    out: List[Problem] = []
    fact_index = 0
    for i, problem in enumerate(marked):
        out.append(problem)
        if (i + 1) % interval == 0 and fact_index < len(facts) and i < len(marked) - 1:
            out.append(math_fact_to_problem(facts[fact_index]))
            fact_index += 1
    return out


def should_interleave_facts(grade_level: int, interleave_enabled: Optional[bool] = None) -> bool:
    if interleave_enabled is not None:
        return interleave_enabled
    return 4 <= grade_level <= 8
