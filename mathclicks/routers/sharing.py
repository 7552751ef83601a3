from fastapi import APIRouter, Depends, HTTPException
from starlette.status import HTTP_400_BAD_REQUEST

from mathclicks.core.deps import get_profile_store, get_teacher_sharing
from mathclicks.models.sharing import (
    AchievementRequest,
    ConnectRequest,
    FlagRequest,
    SessionSnapshot,
    SharingStatus,
)
from mathclicks.services.gamification import ProfileStore, snapshot_stats
from mathclicks.services.teacher_sharing import TeacherSharing, clean_class_code

router = APIRouter(prefix="/v1/sharing", tags=["sharing"])


@router.get("", response_model=SharingStatus)
def sharing_status(sharing: TeacherSharing = Depends(get_teacher_sharing)):
    return sharing.status()


@router.post("/connect", response_model=SharingStatus)
def connect(body: ConnectRequest, sharing: TeacherSharing = Depends(get_teacher_sharing)):
    student_name = body.studentName.strip()
    class_code = clean_class_code(body.classCode)
    if not student_name or not class_code:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Student name and class code are required")
    sharing.connect_to_class(student_name, class_code)
    return sharing.status()


@router.post("/disconnect", response_model=SharingStatus)
def disconnect(sharing: TeacherSharing = Depends(get_teacher_sharing)):
    sharing.disconnect_from_class()
    return sharing.status()


@router.post("/sync")
def sync(
    body: SessionSnapshot,
    sharing: TeacherSharing = Depends(get_teacher_sharing),
    profiles: ProfileStore = Depends(get_profile_store),
):
    # niveau, XP et série viennent du profil stocké quand il existe
    profile = profiles.get_profile()
    if profile is not None:
        body = body.model_copy(update=snapshot_stats(profile))
    return {"synced": sharing.sync_session(body)}


@router.post("/achievement")
def achievement(body: AchievementRequest, sharing: TeacherSharing = Depends(get_teacher_sharing)):
    return {"reported": sharing.report_achievement(body.achievementName, body.achievementIcon)}


@router.post("/help")
def request_help(body: FlagRequest, sharing: TeacherSharing = Depends(get_teacher_sharing)):
    return {"synced": sharing.request_help(body.value)}


@router.post("/stuck")
def mark_stuck(body: FlagRequest, sharing: TeacherSharing = Depends(get_teacher_sharing)):
    return {"synced": sharing.mark_stuck(body.value)}
