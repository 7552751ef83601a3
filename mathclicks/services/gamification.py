import logging
import random
import string
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from mathclicks.models.profile import (
    Achievement,
    LevelUpResult,
    ProblemCompletedResult,
    StudentProfile,
    XpAward,
)
from mathclicks.services.session_store import to_iso, utcnow
from mathclicks.services.storage import KeyValueStore

logger = logging.getLogger(__name__)

PROFILE_KEY = "mathclicks_student_profile"
XP_PER_LEVEL = 100

XP_PROBLEM_COMPLETE = 10
XP_FIRST_TRY_BONUS = 5
XP_CANVAS_USED = 3
XP_VOICE_EXPLANATION = 3
XP_STREAK_DAY = 2

ACHIEVEMENTS: Tuple[Achievement, ...] = (
    Achievement(id="first_steps", name="First Steps", description="Complete your first problem", icon="👶", xpBonus=10),
    Achievement(id="getting_started", name="Getting Started", description="Complete 5 problems", icon="🚀", xpBonus=15),
    Achievement(id="problem_solver", name="Problem Solver", description="Complete 25 problems", icon="🧮", xpBonus=25),
    Achievement(id="math_master", name="Math Master", description="Complete 100 problems", icon="🏆", xpBonus=50),
    Achievement(id="show_your_work", name="Show Your Work", description="Use the canvas 5 times", icon="✏️", xpBonus=15),
    Achievement(id="artist", name="Artist", description="Use the canvas 25 times", icon="🎨", xpBonus=25),
    Achievement(id="voice_activated", name="Voice Activated", description="Record 3 voice explanations", icon="🎤", xpBonus=15),
    Achievement(id="explain_yourself", name="Explain Yourself", description="Record 10 voice explanations", icon="🗣️", xpBonus=25),
    Achievement(id="perfect_five", name="Perfect Five", description="Get 5 problems correct on first try", icon="⭐", xpBonus=20),
    Achievement(id="streak_starter", name="Streak Starter", description="Practice 3 days in a row", icon="🔥", xpBonus=15),
    Achievement(id="week_warrior", name="Week Warrior", description="Practice 7 days in a row", icon="💪", xpBonus=30),
    Achievement(id="level_up", name="Level Up!", description="Reach level 2", icon="⬆️", xpBonus=0),
    Achievement(id="high_five", name="High Five", description="Reach level 5", icon="🖐️", xpBonus=25),
)

# condition de déblocage par succès
_UNLOCK_RULES: Dict[str, Callable[[StudentProfile], bool]] = {
    "first_steps": lambda p: p.problemsCompleted >= 1,
    "getting_started": lambda p: p.problemsCompleted >= 5,
    "problem_solver": lambda p: p.problemsCompleted >= 25,
    "math_master": lambda p: p.problemsCompleted >= 100,
    "show_your_work": lambda p: p.canvasUsageCount >= 5,
    "artist": lambda p: p.canvasUsageCount >= 25,
    "voice_activated": lambda p: p.voiceExplanationCount >= 3,
    "explain_yourself": lambda p: p.voiceExplanationCount >= 10,
    "perfect_five": lambda p: p.problemsCorrectFirstTry >= 5,
    "streak_starter": lambda p: p.currentStreak >= 3,
    "week_warrior": lambda p: p.currentStreak >= 7,
    "level_up": lambda p: p.level >= 2,
    "high_five": lambda p: p.level >= 5,
}


def generate_profile_id() -> str:
    suffix = "".join(random.choice(string.digits + string.ascii_lowercase) for _ in range(7))
    return f"student_{int(time.time() * 1000)}_{suffix}"


# -------------------
# XP & niveaux
# -------------------
def calculate_level(total_xp: int) -> int:
    return total_xp // XP_PER_LEVEL + 1


def xp_for_current_level(total_xp: int) -> int:
    return total_xp % XP_PER_LEVEL


def award_xp(profile: StudentProfile, amount: int, reason: str) -> Tuple[StudentProfile, Optional[LevelUpResult], XpAward]:
    previous_level = profile.level
    total = profile.totalXp + amount
    level = calculate_level(total)

    updated = profile.model_copy(update={"totalXp": total, "level": level})
    level_up = LevelUpResult(newLevel=level, previousLevel=previous_level) if level > previous_level else None
    return updated, level_up, XpAward(amount=amount, reason=reason)


# -------------------
# Séries
# -------------------
def update_streak(profile: StudentProfile, now: datetime) -> Tuple[StudentProfile, int, bool]:
    """
    Met à jour la série de jours consécutifs (dates UTC).
    Retourne (profil, xp_de_série, nouveau_jour).
    """
    now = now.astimezone(timezone.utc)
    today = now.date().isoformat()
    yesterday = (now - timedelta(days=1)).date().isoformat()

    if profile.lastPracticeDate == today:
        return profile, 0, False

    if profile.lastPracticeDate == yesterday:
        streak = profile.currentStreak + 1
        streak_xp = XP_STREAK_DAY * streak
    else:
        streak = 1
        streak_xp = XP_STREAK_DAY

    updated = profile.model_copy(
        update={
            "currentStreak": streak,
            "longestStreak": max(profile.longestStreak, streak),
            "lastPracticeDate": today,
        }
    )
    return updated, streak_xp, True


# -------------------
# Succès
# -------------------
def check_achievements(profile: StudentProfile, now: datetime) -> Tuple[StudentProfile, List[Achievement]]:
    unlocked_ids = {a.id for a in profile.achievements}
    unlocked_at = to_iso(now)

    new_achievements = [
        a.model_copy(update={"unlockedAt": unlocked_at})
        for a in ACHIEVEMENTS
        if a.id not in unlocked_ids and _UNLOCK_RULES[a.id](profile)
    ]
    if not new_achievements:
        return profile, []
    return profile.model_copy(update={"achievements": profile.achievements + new_achievements}), new_achievements


def snapshot_stats(profile: StudentProfile) -> Dict[str, int]:
    """
    Champs gamification de l'instantané envoyé à l'enseignant.
    """
    return {"level": profile.level, "totalXp": profile.totalXp, "currentStreak": profile.currentStreak}


class ProfileStore:
    """
    Profil de progression d'un élève (XP, niveau, séries, succès),
    stocké sous `mathclicks_student_profile`.
    """

    def __init__(self, store: KeyValueStore, now: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self._now = now

    def get_profile(self) -> Optional[StudentProfile]:
        raw = self.store.get_item(PROFILE_KEY)
        if raw is None:
            return None
        try:
            return StudentProfile.model_validate(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed profile for %s: %s", self.store.namespace, e)
            return None

    def save_profile(self, profile: StudentProfile) -> None:
        self.store.set_item(PROFILE_KEY, profile.model_dump(mode="json"))

    def create_profile(self) -> StudentProfile:
        profile = StudentProfile(id=generate_profile_id(), createdAt=to_iso(self._now()))
        self.save_profile(profile)
        return profile

    def get_or_create_profile(self) -> StudentProfile:
        return self.get_profile() or self.create_profile()

    def handle_problem_completed(
        self,
        correct: bool,
        is_first_try: bool = False,
        used_canvas: bool = False,
        used_voice: bool = False,
    ) -> ProblemCompletedResult:
        now = self._now()
        profile = self.get_or_create_profile()
        awards: List[XpAward] = []
        level_up: Optional[LevelUpResult] = None

        def give(amount: int, reason: str, bonus: bool = False) -> None:
            nonlocal profile, level_up
            profile, up, award = award_xp(profile, amount, reason)
            awards.append(award.model_copy(update={"isBonus": bonus}))
            if up is not None:
                level_up = up

        profile = profile.model_copy(
            update={
                "problemsCompleted": profile.problemsCompleted + 1,
                "problemsCorrectFirstTry": profile.problemsCorrectFirstTry + (1 if correct and is_first_try else 0),
                "canvasUsageCount": profile.canvasUsageCount + (1 if used_canvas else 0),
                "voiceExplanationCount": profile.voiceExplanationCount + (1 if used_voice else 0),
            }
        )

        if correct:
            give(XP_PROBLEM_COMPLETE, "Problem completed")
            if is_first_try:
                give(XP_FIRST_TRY_BONUS, "First try bonus!", bonus=True)
        if used_canvas:
            give(XP_CANVAS_USED, "Showed your work")
        if used_voice:
            give(XP_VOICE_EXPLANATION, "Voice explanation")

        profile, streak_xp, _ = update_streak(profile, now)
        if streak_xp > 0:
            give(streak_xp, f"{profile.currentStreak} day streak!", bonus=True)

        # les succès débloqués par les points ci-dessus ne sont vus qu'au prochain appel
        profile, new_achievements = check_achievements(profile, now)
        for achievement in new_achievements:
            if achievement.xpBonus > 0:
                give(achievement.xpBonus, f"Achievement: {achievement.name}", bonus=True)

        self.save_profile(profile)
        return ProblemCompletedResult(
            profile=profile,
            xpAwarded=awards,
            levelUp=level_up,
            newAchievements=new_achievements,
        )
