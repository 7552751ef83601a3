from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT, HTTP_404_NOT_FOUND

from mathclicks.core.deps import get_session_store
from mathclicks.models.problems import ProblemAttempt
from mathclicks.models.sessions import (
    CanvasImageResponse,
    CreateSessionRequest,
    SessionListResponse,
    SessionUpdate,
    StoredSession,
)
from mathclicks.services.session_store import SessionStore

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])


def _get_or_404(store: SessionStore, session_id: str) -> StoredSession:
    session = store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@router.get("", response_model=SessionListResponse)
def list_sessions(store: SessionStore = Depends(get_session_store)):
    return SessionListResponse(sessions=store.list_sessions())


@router.get("/incomplete", response_model=SessionListResponse)
def list_incomplete_sessions(store: SessionStore = Depends(get_session_store)):
    return SessionListResponse(sessions=store.get_incomplete_sessions())


@router.get("/current", response_model=StoredSession)
def get_current_session(store: SessionStore = Depends(get_session_store)):
    session = store.get_current_session()
    if session is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="No current session")
    return session


@router.delete("/current", status_code=HTTP_204_NO_CONTENT)
def clear_current_session(store: SessionStore = Depends(get_session_store)):
    store.clear_current_session_id()
    return Response(status_code=HTTP_204_NO_CONTENT)


@router.post("", response_model=StoredSession, status_code=HTTP_201_CREATED)
def create_session(body: CreateSessionRequest, store: SessionStore = Depends(get_session_store)):
    return store.create_session(body.extraction, body.problems)


@router.get("/{session_id}", response_model=StoredSession)
def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    return _get_or_404(store, session_id)


@router.patch("/{session_id}", response_model=StoredSession)
def update_session(session_id: str, body: SessionUpdate, store: SessionStore = Depends(get_session_store)):
    session = store.update_session(session_id, body)
    if session is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@router.delete("/{session_id}", status_code=HTTP_204_NO_CONTENT)
def delete_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    store.delete_session(session_id)
    return Response(status_code=HTTP_204_NO_CONTENT)


@router.put("/{session_id}/current", response_model=StoredSession)
def set_current_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = _get_or_404(store, session_id)
    store.set_current_session_id(session_id)
    return session


# -------------------
# Tentatives (brouillons)
# -------------------
@router.get("/{session_id}/problems/{problem_id}/attempts", response_model=List[ProblemAttempt])
def list_problem_attempts(session_id: str, problem_id: str, store: SessionStore = Depends(get_session_store)):
    _get_or_404(store, session_id)
    return store.get_problem_attempts(session_id, problem_id)


@router.post(
    "/{session_id}/problems/{problem_id}/attempts",
    response_model=List[ProblemAttempt],
    status_code=HTTP_201_CREATED,
)
def add_problem_attempt(
    session_id: str,
    problem_id: str,
    attempt: ProblemAttempt,
    store: SessionStore = Depends(get_session_store),
):
    _get_or_404(store, session_id)
    store.save_problem_attempt(session_id, problem_id, attempt)
    return store.get_problem_attempts(session_id, problem_id)


@router.get("/{session_id}/problems/{problem_id}/canvas", response_model=CanvasImageResponse)
def latest_canvas_image(session_id: str, problem_id: str, store: SessionStore = Depends(get_session_store)):
    _get_or_404(store, session_id)
    return CanvasImageResponse(canvasImage=store.get_latest_canvas_image(session_id, problem_id))
