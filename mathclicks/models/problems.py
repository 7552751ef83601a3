from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AnswerType(str, Enum):
    integer = "integer"
    decimal = "decimal"
    fraction = "fraction"
    expression = "expression"
    coordinate = "coordinate"
    multiple_choice = "multiple_choice"
    true_false = "true_false"


class ProblemCategory(str, Enum):
    lesson = "lesson"
    math_fact = "math_fact"


class Problem(BaseModel):
    # les champs inconnus du backend sont conservés tels quels
    model_config = ConfigDict(extra="allow")

    id: str
    tier: int = Field(..., ge=1, le=5, description="Niveau de difficulté (1-5)")
    problem_text: str
    problem_latex: Optional[str] = None
    answer: str
    answer_type: AnswerType
    acceptable_answers: Optional[List[str]] = None
    solution_steps: List[str] = Field(default_factory=list)
    hints: List[str] = Field(default_factory=list)
    common_mistakes: Optional[List[str]] = None
    category: Optional[ProblemCategory] = None
    source: Optional[str] = None


class ProblemSet(BaseModel):
    topic: str
    problems: List[Problem]
    generated_at: str


class WorkedExample(BaseModel):
    problem: Optional[str] = None
    steps: Optional[List[str]] = None
    solution: Optional[str] = None


class ExtractedContent(BaseModel):
    equations: Optional[List[str]] = None
    examples_shown: Optional[List[Union[str, WorkedExample]]] = None
    concepts: Optional[List[str]] = None
    word_problems: Optional[List[str]] = None
    definitions: Optional[List[str]] = None
    graphs_described: Optional[List[str]] = None


class ImageExtractionResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    topic: str
    subtopics: List[str] = Field(default_factory=list)
    grade_level: int
    standards: List[str] = Field(default_factory=list)
    extracted_content: ExtractedContent = Field(default_factory=ExtractedContent)
    difficulty_baseline: int = 1


class ProblemAttempt(BaseModel):
    problemId: str
    attemptNumber: int = Field(..., ge=1)
    answer: Optional[str] = None
    canvasImage: Optional[str] = Field(None, description="PNG base64 du brouillon")
    canvasUsed: bool = False
    timestamp: str
    correct: Optional[bool] = None
    feedback: Optional[str] = None
    aiQuestion: Optional[str] = None
    studentResponse: Optional[str] = None
    voiceRecording: Optional[str] = None
    voiceTranscript: Optional[str] = None


class CheckAnswerResponse(BaseModel):
    correct: bool
    feedback: str = ""
    error_type: Optional[str] = None
    hint_to_show: Optional[int] = None
    hint_text: Optional[str] = None
