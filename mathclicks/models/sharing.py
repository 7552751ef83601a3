from typing import List, Optional

from pydantic import BaseModel, Field


class TeacherSharingState(BaseModel):
    isSharing: bool = False
    studentName: str = ""
    classCode: str = ""
    studentId: str = ""


class RecentWork(BaseModel):
    problemId: str
    problemText: str
    attempts: int = 0
    correct: bool = False
    canvasImageUrl: Optional[str] = None
    timestamp: str


class SessionSnapshot(BaseModel):
    topic: str
    gradeLevel: int
    problemsCompleted: int = 0
    problemsCorrect: int = 0
    currentProblemIndex: int = 0
    totalProblems: int = 0
    level: int = 1
    totalXp: int = 0
    currentStreak: int = 0
    isStuck: bool = False
    needsHelp: bool = False
    recentWork: List[RecentWork] = Field(default_factory=list)


class ConnectRequest(BaseModel):
    studentName: str = Field(..., min_length=1, max_length=80)
    classCode: str = Field(..., min_length=1, max_length=20)


class AchievementRequest(BaseModel):
    achievementName: str = Field(..., min_length=1)
    achievementIcon: str = ""


class FlagRequest(BaseModel):
    value: bool = True


class SharingStatus(BaseModel):
    isSharing: bool
    studentName: str
    classCode: str
    isSyncing: bool = False
