"""Completion events posted by the assessment and training subsystems.

Each event advances the journey whose active phase is linked to the completed
assessment or training assignment. Events for unlinked or inactive phases are
accepted and ignored (advanced=false), so the senders can fire and forget.
"""

from fastapi import APIRouter, Depends

from skill_loop.api.routes.journeys import get_notifier
from skill_loop.db.base import get_session_factory
from skill_loop.schemas.journeys import AdvanceResponse, AssessmentCompletedEvent, TrainingCompletedEvent
from skill_loop.services.journey import run_with_conflict_retry
from skill_loop.services.notification_service import JourneyNotifier

router = APIRouter()


@router.post("/assessment-completed", response_model=AdvanceResponse)
async def assessment_completed(event: AssessmentCompletedEvent, notifier: JourneyNotifier = Depends(get_notifier)):
    advanced = await run_with_conflict_retry(
        get_session_factory(),
        lambda service: service.advance_for_assessment(event.assessment_id, event.user_id),
        notifier=notifier,
        assessment_id=event.assessment_id,
    )
    return AdvanceResponse(advanced=advanced)


@router.post("/training-completed", response_model=AdvanceResponse)
async def training_completed(event: TrainingCompletedEvent, notifier: JourneyNotifier = Depends(get_notifier)):
    advanced = await run_with_conflict_retry(
        get_session_factory(),
        lambda service: service.advance_for_training(event.training_assignment_id),
        notifier=notifier,
        training_assignment_id=event.training_assignment_id,
    )
    return AdvanceResponse(advanced=advanced)
