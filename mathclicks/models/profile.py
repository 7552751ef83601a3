from typing import List, Optional

from pydantic import BaseModel, Field


class Achievement(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    xpBonus: int = 0
    unlockedAt: Optional[str] = None


class StudentProfile(BaseModel):
    id: str
    createdAt: str
    # XP & niveaux
    totalXp: int = 0
    level: int = 1
    # Stats
    problemsCompleted: int = 0
    problemsCorrectFirstTry: int = 0
    canvasUsageCount: int = 0
    voiceExplanationCount: int = 0
    # Séries (jours consécutifs)
    currentStreak: int = 0
    longestStreak: int = 0
    lastPracticeDate: Optional[str] = Field(None, description="YYYY-MM-DD (UTC)")
    achievements: List[Achievement] = Field(default_factory=list)


class XpAward(BaseModel):
    amount: int
    reason: str
    isBonus: bool = False


class LevelUpResult(BaseModel):
    newLevel: int
    previousLevel: int


class ProblemCompletedRequest(BaseModel):
    correct: bool
    isFirstTry: bool = False
    usedCanvas: bool = False
    usedVoice: bool = False


class ProblemCompletedResult(BaseModel):
    profile: StudentProfile
    xpAwarded: List[XpAward]
    levelUp: Optional[LevelUpResult] = None
    newAchievements: List[Achievement]
    reportedToTeacher: bool = False


class ProfileResponse(BaseModel):
    profile: StudentProfile
    xpForCurrentLevel: int
    xpPerLevel: int
