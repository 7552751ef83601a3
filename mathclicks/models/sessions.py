from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from mathclicks.models.problems import (
    CheckAnswerResponse,
    ImageExtractionResult,
    Problem,
    ProblemAttempt,
    ProblemSet,
)


class StoredSession(BaseModel):
    id: str
    createdAt: str
    updatedAt: str
    topic: str
    extraction: ImageExtractionResult
    problems: List[Problem]
    currentIndex: int = 0
    attempts: Dict[str, int] = Field(default_factory=dict)
    results: Dict[str, bool] = Field(default_factory=dict)
    problemAttempts: Optional[Dict[str, List[ProblemAttempt]]] = None


class SessionUpdate(BaseModel):
    """
    Champs modifiables d'une session (les autres sont figés à la création).
    """
    currentIndex: Optional[int] = Field(None, ge=0)
    attempts: Optional[Dict[str, int]] = None
    results: Optional[Dict[str, bool]] = None
    problemAttempts: Optional[Dict[str, List[ProblemAttempt]]] = None


class Progress(BaseModel):
    current: int
    total: int
    correct: int


class SessionSummary(BaseModel):
    id: str
    topic: str
    createdAt: str
    updatedAt: str
    progress: Progress
    isComplete: bool


class SessionListResponse(BaseModel):
    sessions: List[SessionSummary]


class CreateSessionRequest(BaseModel):
    extraction: ImageExtractionResult
    problems: ProblemSet


class CanvasImageResponse(BaseModel):
    canvasImage: Optional[str] = None


# -------------------
# Practice
# -------------------
class PracticeState(BaseModel):
    sessionId: Optional[str] = None
    extraction: Optional[ImageExtractionResult] = None
    problems: List[Problem] = Field(default_factory=list)
    currentIndex: int = 0
    attempts: Dict[str, int] = Field(default_factory=dict)
    results: Dict[str, bool] = Field(default_factory=dict)
    isLoading: bool = False
    error: Optional[str] = None
    lastFeedback: Optional[CheckAnswerResponse] = None
    isRestored: bool = False
    status: str = "loading"  # loading | active | complete
    isComplete: bool = False
    progress: Progress = Field(default_factory=lambda: Progress(current=1, total=0, correct=0))
    currentProblem: Optional[Problem] = None


class SubmitAnswerRequest(BaseModel):
    answer: str


class ResumeRequest(BaseModel):
    sessionId: str


class StartPracticeRequest(CreateSessionRequest):
    # insère un fait de calcul tous les 3 problèmes (niveaux 4 à 8)
    interleaveMathFacts: bool = False
