import random
import time
from typing import List, Tuple

from mathclicks.models.problems import AnswerType
from mathclicks.models.review import ReviewAnswerType, ReviewProblem
from mathclicks.services.session_store import SessionStore
from mathclicks.utils.text_utils import normalize_answer, parse_leading_float

OPERATIONS = ("+", "-", "×", "÷")
REVIEWABLE_TYPES = (AnswerType.integer, AnswerType.decimal, AnswerType.fraction)
NUMERIC_TOLERANCE = 0.01


def _make_fact(op: str) -> Tuple[int, int, int]:
    """
    Tire (a, b, réponse) pour une opération. La division tombe toujours juste.
    """
    if op == "+":
        a = random.randint(10, 59)
        b = random.randint(10, 59)
        return a, b, a + b
    if op == "-":
        a = random.randint(30, 79)
        b = random.randint(1, 30)
        return a, b, a - b
    if op == "×":
        a = random.randint(1, 12)
        b = random.randint(1, 12)
        return a, b, a * b
    if op == "÷":
        b = random.randint(1, 12)
        quotient = random.randint(1, 12)
        return b * quotient, b, quotient
    raise ValueError(f"Opération inconnue : {op}")


def generate_basic_math_problems(count: int) -> List[ReviewProblem]:
    stamp = int(time.time() * 1000)
    problems: List[ReviewProblem] = []
    for i in range(count):
        op = random.choice(OPERATIONS)
        a, b, answer = _make_fact(op)
        problems.append(
            ReviewProblem(
                id=f"review-{stamp}-{i}",
                question=f"{a} {op} {b} = ?",
                answer=str(answer),
                answerType=ReviewAnswerType.integer,
            )
        )
    return problems


def get_problems_from_previous_sessions(store: SessionStore, count: int) -> List[ReviewProblem]:
    review: List[ReviewProblem] = []

    for summary in store.list_sessions():
        session = store.get_session(summary.id)
        if session is None or not session.problems:
            continue

        for problem in session.problems:
            if problem.answer_type not in REVIEWABLE_TYPES:
                continue
            answer_type = (
                ReviewAnswerType.integer
                if problem.answer_type == AnswerType.integer
                else ReviewAnswerType.decimal
            )
            review.append(
                ReviewProblem(
                    id=f"prev-{problem.id}",
                    question=problem.problem_text,
                    answer=problem.answer,
                    answerType=answer_type,
                )
            )

        if len(review) >= count * 2:
            break

    random.shuffle(review)
    return review[:count]


def has_previous_sessions(store: SessionStore) -> bool:
    return len(store.list_sessions()) > 0


def get_review_problems(store: SessionStore, count: int = 10) -> Tuple[List[ReviewProblem], bool]:
    """
    Problèmes de révision pendant l'analyse de l'image :
    - issus des sessions précédentes s'il y en a assez (>= min(3, count)),
    - sinon calcul mental aléatoire.
    Retourne (problèmes, issus_des_sessions).
    """
    if has_previous_sessions(store):
        previous = get_problems_from_previous_sessions(store, count)
        if len(previous) >= min(3, count):
            return previous, True

    return generate_basic_math_problems(count), False


def check_review_answer(problem: ReviewProblem, student_answer: str) -> bool:
    correct = normalize_answer(problem.answer)
    student = normalize_answer(student_answer)

    if correct == student:
        return True

    correct_num = parse_leading_float(correct)
    student_num = parse_leading_float(student)
    if correct_num is not None and student_num is not None:
        return abs(correct_num - student_num) < NUMERIC_TOLERANCE

    return False
