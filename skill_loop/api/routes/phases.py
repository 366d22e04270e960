"""Phase API routes."""

import uuid

from fastapi import APIRouter, Depends, Response

from skill_loop.api.routes.journeys import get_notifier
from skill_loop.db.base import get_session_factory
from skill_loop.schemas.journeys import (
    AdvanceResponse,
    AssignMentorRequest,
    CompletePhaseRequest,
    LinkAssessmentRequest,
    LinkTrainingRequest,
    MentorPhaseResponse,
    UpdatePhaseRequest,
)
from skill_loop.services.journey import JourneyService, run_with_conflict_retry
from skill_loop.services.journey_admin_service import JourneyAdminService
from skill_loop.services.journey_query_service import JourneyQueryService
from skill_loop.services.notification_service import JourneyNotifier

router = APIRouter()


@router.get("/mentors/{mentor_id}", response_model=list[MentorPhaseResponse])
async def mentor_phases(mentor_id: uuid.UUID):
    """Phases a mentor is assigned to, soonest due first."""
    return await JourneyQueryService(get_session_factory()).get_mentor_phases(mentor_id)


@router.post("/{phase_id}/complete", response_model=AdvanceResponse)
async def complete_phase(
    phase_id: uuid.UUID,
    request: CompletePhaseRequest,
    notifier: JourneyNotifier = Depends(get_notifier),
):
    """Admin override: complete the active phase and advance.

    Returns advanced=false if the phase was already completed.

    Raises:
        404: phase not found
        409: phase is not the active one, or the journey is paused
    """
    advanced = await run_with_conflict_retry(
        get_session_factory(),
        lambda service: service.manually_complete_phase(phase_id, request.completed_by, request.notes),
        notifier=notifier,
        phase_id=str(phase_id),
    )
    return AdvanceResponse(advanced=advanced)


@router.patch("/{phase_id}", status_code=204)
async def update_phase(phase_id: uuid.UUID, request: UpdatePhaseRequest):
    async with get_session_factory()() as session:
        await JourneyAdminService(session).update_phase_details(
            phase_id, request.title, request.description, request.duration_days
        )
    return Response(status_code=204)


@router.delete("/{phase_id}", status_code=204)
async def delete_phase(phase_id: uuid.UUID):
    async with get_session_factory()() as session:
        await JourneyAdminService(session).delete_phase(phase_id)
    return Response(status_code=204)


@router.put("/{phase_id}/mentor", status_code=204)
async def assign_mentor(
    phase_id: uuid.UUID,
    request: AssignMentorRequest,
    notifier: JourneyNotifier = Depends(get_notifier),
):
    async with get_session_factory()() as session:
        await JourneyAdminService(session, notifier).assign_mentor(phase_id, request.mentor_id, request.notify)
    return Response(status_code=204)


@router.delete("/{phase_id}/mentor", status_code=204)
async def remove_mentor(phase_id: uuid.UUID):
    async with get_session_factory()() as session:
        await JourneyAdminService(session).remove_mentor(phase_id)
    return Response(status_code=204)


@router.put("/{phase_id}/assessment", status_code=204)
async def link_assessment(phase_id: uuid.UUID, request: LinkAssessmentRequest):
    async with get_session_factory()() as session:
        await JourneyService(session).link_assessment_to_phase(phase_id, request.assessment_id)
    return Response(status_code=204)


@router.put("/{phase_id}/training", status_code=204)
async def link_training(phase_id: uuid.UUID, request: LinkTrainingRequest):
    async with get_session_factory()() as session:
        await JourneyService(session).link_training_to_phase(phase_id, request.training_assignment_id)
    return Response(status_code=204)
