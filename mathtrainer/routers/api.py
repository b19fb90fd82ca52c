"""API routes: JSON for progress, attempt recording, presets, stats and achievements."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mathtrainer.core.config import get_settings
from mathtrainer.core.errors import InvalidAttemptError, SyncError, UnknownTrainerError
from mathtrainer.core.security import verify_session_token
from mathtrainer.db.session import get_db
from mathtrainer.schemas.progress import RecordAttemptOutSchema, TrainerPresetsOutSchema, TrainerProgressOutSchema
from mathtrainer.schemas.stats import AchievementsOutSchema, ChallengeTodayOutSchema, StatsSummaryOutSchema
from mathtrainer.services.progress import load_progress, preset_graph_view
from mathtrainer.services.recording import record_attempt
from mathtrainer.services.summary import challenge_today, list_achievements, stats_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])
settings = get_settings()


def get_current_learner(request: Request) -> str:
    """Learner id from the signed auth cookie; 401 when missing or invalid."""
    token = request.cookies.get(settings.auth_cookie_name)
    learner_id = verify_session_token(token)
    if learner_id is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    return learner_id


@router.get(
    "/progress/trainer/{trainer_id}",
    response_model=TrainerProgressOutSchema,
    response_model_by_alias=True,
)
async def get_trainer_progress(
    trainer_id: str,
    learner_id: Annotated[str, Depends(get_current_learner)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Stored progress for one trainer; null until the first recorded attempt."""
    try:
        progress = await load_progress(db, learner_id, trainer_id)
    except UnknownTrainerError as exc:
        raise HTTPException(status_code=404, detail=exc.code)
    return TrainerProgressOutSchema(
        trainer_id=trainer_id.strip(),
        progress=progress.to_dict() if progress is not None else None,
    )


@router.post("/progress/record", response_model=RecordAttemptOutSchema, response_model_by_alias=True)
async def post_record_attempt(
    request: Request,
    learner_id: Annotated[str, Depends(get_current_learner)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Record one finished session; a repeated attempt id returns duplicate=true."""
    try:
        body = await request.json()
    except (ValueError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail=InvalidAttemptError.code)

    try:
        outcome = await record_attempt(db, learner_id, body)
    except InvalidAttemptError as exc:
        logger.info("rejected record for learner=%s: %s", learner_id, exc)
        raise HTTPException(status_code=400, detail=exc.code)
    except UnknownTrainerError as exc:
        raise HTTPException(status_code=400, detail=exc.code)
    except SyncError as exc:
        raise HTTPException(status_code=503, detail=exc.code)
    return outcome.to_dict()


@router.get(
    "/trainers/{trainer_id}/presets",
    response_model=TrainerPresetsOutSchema,
    response_model_by_alias=True,
)
async def get_trainer_presets(
    trainer_id: str,
    learner_id: Annotated[str, Depends(get_current_learner)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Preset list with lock/completed state for the learner's stored progress."""
    try:
        view = await preset_graph_view(db, learner_id, trainer_id)
    except UnknownTrainerError as exc:
        raise HTTPException(status_code=404, detail=exc.code)
    return TrainerPresetsOutSchema(**view)


@router.get("/achievements", response_model=AchievementsOutSchema, response_model_by_alias=True)
async def get_achievements(
    learner_id: Annotated[str, Depends(get_current_learner)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    achievements = await list_achievements(db, learner_id)
    return AchievementsOutSchema(achievements=achievements)


@router.get("/stats/summary", response_model=StatsSummaryOutSchema, response_model_by_alias=True)
async def get_stats_summary(
    learner_id: Annotated[str, Depends(get_current_learner)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Totals, accuracy and the last week of successful sessions (UTC days)."""
    summary = await stats_summary(db, learner_id)
    return StatsSummaryOutSchema(**summary)


@router.get("/challenge/today", response_model=ChallengeTodayOutSchema, response_model_by_alias=True)
async def get_challenge_today(
    learner_id: Annotated[str, Depends(get_current_learner)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return ChallengeTodayOutSchema(**await challenge_today(db, learner_id))
