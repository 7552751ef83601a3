from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ReviewAnswerType(str, Enum):
    integer = "integer"
    decimal = "decimal"


class ReviewProblem(BaseModel):
    id: str
    question: str
    answer: str
    answerType: ReviewAnswerType = ReviewAnswerType.integer


class ReviewProblemListResponse(BaseModel):
    problems: List[ReviewProblem]
    fromPreviousSessions: bool


class ReviewCheckRequest(BaseModel):
    problem: ReviewProblem
    studentAnswer: str


class CheckResult(BaseModel):
    correct: bool


# -------------------
# Math facts
# -------------------
class Operation(str, Enum):
    addition = "addition"
    subtraction = "subtraction"
    multiplication = "multiplication"
    division = "division"


class MathFact(BaseModel):
    id: str
    problem_text: str
    answer: str
    operation: Operation
    difficulty: int = Field(..., ge=1, le=3)
    category: str = "math_fact"


class MathFactListResponse(BaseModel):
    facts: List[MathFact]


class MathFactCheckRequest(BaseModel):
    fact: MathFact
    studentAnswer: str


class WarmUpSettings(BaseModel):
    enabled: bool = False
    duration: int = Field(2, ge=1, le=10, description="Durée en minutes")
    focus: str = "mixed"
    required: bool = False
    facts: Optional[List[MathFact]] = None
