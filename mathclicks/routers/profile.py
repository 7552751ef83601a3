from typing import List

from fastapi import APIRouter, Depends

from mathclicks.core.deps import get_profile_store, get_teacher_sharing
from mathclicks.models.profile import Achievement, ProblemCompletedRequest, ProblemCompletedResult, ProfileResponse
from mathclicks.services.gamification import ACHIEVEMENTS, XP_PER_LEVEL, ProfileStore, xp_for_current_level
from mathclicks.services.teacher_sharing import TeacherSharing

router = APIRouter(prefix="/v1/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse)
def get_profile(profiles: ProfileStore = Depends(get_profile_store)):
    profile = profiles.get_or_create_profile()
    return ProfileResponse(
        profile=profile,
        xpForCurrentLevel=xp_for_current_level(profile.totalXp),
        xpPerLevel=XP_PER_LEVEL,
    )


@router.get("/achievements", response_model=List[Achievement])
def list_achievements(profiles: ProfileStore = Depends(get_profile_store)):
    """
    Catalogue complet ; `unlockedAt` renseigné pour les succès obtenus.
    """
    profile = profiles.get_or_create_profile()
    unlocked = {a.id: a.unlockedAt for a in profile.achievements}
    return [a.model_copy(update={"unlockedAt": unlocked.get(a.id)}) for a in ACHIEVEMENTS]


@router.post("/problem-completed", response_model=ProblemCompletedResult)
def problem_completed(
    body: ProblemCompletedRequest,
    profiles: ProfileStore = Depends(get_profile_store),
    sharing: TeacherSharing = Depends(get_teacher_sharing),
):
    result = profiles.handle_problem_completed(
        correct=body.correct,
        is_first_try=body.isFirstTry,
        used_canvas=body.usedCanvas,
        used_voice=body.usedVoice,
    )

    # nouveaux succès annoncés à la classe si le partage est actif
    reported = [sharing.report_achievement(a.name, a.icon) for a in result.newAchievements]
    return result.model_copy(update={"reportedToTeacher": any(reported)})
