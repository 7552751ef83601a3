from fastapi import APIRouter, Depends, HTTPException
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_404_NOT_FOUND

from mathclicks.core.deps import get_practice_session
from mathclicks.models.sessions import PracticeState, ResumeRequest, StartPracticeRequest, SubmitAnswerRequest
from mathclicks.services.practice_session import PracticeSession

router = APIRouter(prefix="/v1/practice", tags=["practice"])


@router.get("", response_model=PracticeState)
def get_state(practice: PracticeSession = Depends(get_practice_session)):
    return practice.to_state()


@router.post("/start", response_model=PracticeState)
def start(body: StartPracticeRequest, practice: PracticeSession = Depends(get_practice_session)):
    practice.start_session(body.extraction, body.problems, interleave_facts=body.interleaveMathFacts)
    return practice.to_state()


@router.post("/resume", response_model=PracticeState)
def resume(body: ResumeRequest, practice: PracticeSession = Depends(get_practice_session)):
    if not practice.resume_session(body.sessionId):
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Session not found")
    return practice.to_state()


@router.post("/end", response_model=PracticeState)
def end(practice: PracticeSession = Depends(get_practice_session)):
    practice.end_session()
    return practice.to_state()


@router.post("/answer", response_model=PracticeState)
def answer(body: SubmitAnswerRequest, practice: PracticeSession = Depends(get_practice_session)):
    if practice.current_problem() is None:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="No active problem")
    # un échec de vérification reste visible dans state.error
    practice.submit_answer(body.answer)
    return practice.to_state()


@router.post("/next", response_model=PracticeState)
def next_problem(practice: PracticeSession = Depends(get_practice_session)):
    practice.next_problem()
    return practice.to_state()


@router.post("/clear-feedback", response_model=PracticeState)
def clear_feedback(practice: PracticeSession = Depends(get_practice_session)):
    practice.clear_feedback()
    return practice.to_state()
