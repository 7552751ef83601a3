from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.status import HTTP_400_BAD_REQUEST

from mathclicks.core.deps import get_session_store
from mathclicks.models.review import (
    CheckResult,
    MathFactCheckRequest,
    MathFactListResponse,
    Operation,
    ReviewCheckRequest,
    ReviewProblemListResponse,
    WarmUpSettings,
)
from mathclicks.services import math_facts
from mathclicks.services.review_problems import check_review_answer, get_review_problems
from mathclicks.services.session_store import SessionStore

router = APIRouter(prefix="/v1", tags=["review"])


@router.get("/review/problems", response_model=ReviewProblemListResponse)
def review_problems(
    count: int = Query(10, ge=1, le=50),
    store: SessionStore = Depends(get_session_store),
):
    problems, from_sessions = get_review_problems(store, count)
    return ReviewProblemListResponse(problems=problems, fromPreviousSessions=from_sessions)


@router.post("/review/check", response_model=CheckResult)
def review_check(body: ReviewCheckRequest):
    return CheckResult(correct=check_review_answer(body.problem, body.studentAnswer))


# -------------------
# Math facts
# -------------------
def _focus(operation: str) -> str:
    if operation != math_facts.MIXED and operation not in {op.value for op in Operation}:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail=f"Unknown operation: {operation}")
    return operation


@router.get("/math-facts", response_model=MathFactListResponse)
def list_math_facts(
    grade: int = Query(6, ge=4, le=8),
    count: int = Query(10, ge=1, le=100),
    operation: str = Query(math_facts.MIXED),
):
    facts = math_facts.generate_math_facts(grade, count, _focus(operation))
    return MathFactListResponse(facts=facts)


@router.get("/math-facts/speed-challenge", response_model=MathFactListResponse)
def speed_challenge(grade: int = Query(6, ge=4, le=8)):
    return MathFactListResponse(facts=math_facts.generate_speed_challenge_facts(grade))


@router.get("/math-facts/warm-up", response_model=WarmUpSettings)
def warm_up(
    grade: int = Query(6, ge=4, le=8),
    duration: int = Query(2, ge=1, le=10),
    focus: str = Query(math_facts.MIXED),
):
    facts = math_facts.generate_warm_up_facts(grade, duration, _focus(focus))
    return WarmUpSettings(enabled=True, duration=duration, focus=focus, facts=facts)


@router.post("/math-facts/check", response_model=CheckResult)
def check_math_fact(body: MathFactCheckRequest):
    return CheckResult(correct=math_facts.check_math_fact_answer(body.fact, body.studentAnswer))
