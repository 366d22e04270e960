"""Journey API routes."""

import uuid

from fastapi import APIRouter, Depends

from skill_loop.db.base import get_session_factory
from skill_loop.domain.journeys import EmployeeCategory, JourneyStatus, SystemTrigger
from skill_loop.schemas.journeys import (
    AddPhaseRequest,
    AdvanceJourneyRequest,
    AdvanceResponse,
    CreateJourneyRequest,
    CreateJourneyResponse,
    JourneyDetailResponse,
    JourneyStatisticsResponse,
    JourneyStatusResponse,
    JourneySummaryResponse,
    PauseJourneyRequest,
    PhaseConfigOut,
    ProgressResponse,
    SkipPhaseRequest,
)
from skill_loop.services.journey import JourneyService, advance_journey, run_with_conflict_retry
from skill_loop.services.journey_admin_service import JourneyAdminService
from skill_loop.services.journey_query_service import JourneyQueryService
from skill_loop.services.notification_service import JourneyNotifier, LoggingNotifier

router = APIRouter()


def get_notifier() -> JourneyNotifier:
    """Dependency that provides the JourneyNotifier.

    Override this dependency in tests via app.dependency_overrides.
    """
    return LoggingNotifier()


@router.post("", response_model=CreateJourneyResponse, status_code=201)
async def create_journey(request: CreateJourneyRequest, notifier: JourneyNotifier = Depends(get_notifier)):
    """Start a journey for an employee.

    Raises:
        404: user not found
        409: user already has an open journey
        422: invalid phase list
    """
    phases = [p.to_config() for p in request.phases] if request.phases is not None else None
    async with get_session_factory()() as session:
        service = JourneyAdminService(session, notifier)
        journey_id = await service.create_journey(
            request.user_id, request.employee_category, phases, request.start_date
        )
    return CreateJourneyResponse(journey_id=journey_id)


@router.get("", response_model=list[JourneySummaryResponse])
async def list_journeys(
    employee_category: EmployeeCategory | None = None,
    status: JourneyStatus | None = None,
    search: str | None = None,
):
    """List journeys with their current phase and progress."""
    service = JourneyQueryService(get_session_factory())
    return await service.list_journeys(employee_category, status, search)


@router.get("/stats", response_model=JourneyStatisticsResponse)
async def journey_statistics():
    """Counts by journey status and category, plus overdue phases."""
    return await JourneyQueryService(get_session_factory()).get_statistics()


@router.get("/defaults/{employee_category}", response_model=list[PhaseConfigOut])
async def default_phase_configs(employee_category: EmployeeCategory):
    """Default phase template for a category."""
    return JourneyQueryService(get_session_factory()).get_default_phase_configs(employee_category)


@router.get("/users/{user_id}", response_model=JourneyDetailResponse)
async def get_employee_journey(user_id: uuid.UUID):
    """The user's latest journey with phases, recent activity and progress."""
    return await JourneyQueryService(get_session_factory()).get_employee_journey(user_id)


@router.get("/{journey_id}/progress", response_model=ProgressResponse)
async def journey_progress(journey_id: uuid.UUID):
    async with get_session_factory()() as session:
        progress = await JourneyService(session).calculate_phase_progress(journey_id)
    return ProgressResponse.from_progress(progress)


@router.post("/{journey_id}/advance", response_model=AdvanceResponse)
async def advance(
    journey_id: uuid.UUID,
    request: AdvanceJourneyRequest,
    notifier: JourneyNotifier = Depends(get_notifier),
):
    """Complete the active phase on behalf of an external system.

    Returns advanced=false when there is nothing to advance.

    Raises:
        404: journey not found
        409: journey is paused
    """
    advanced = await advance_journey(
        get_session_factory(),
        journey_id,
        SystemTrigger(source=request.source),
        request.detail,
        notifier=notifier,
    )
    return AdvanceResponse(advanced=advanced)


@router.post("/{journey_id}/pause", response_model=JourneyStatusResponse)
async def pause_journey(journey_id: uuid.UUID, request: PauseJourneyRequest):
    async with get_session_factory()() as session:
        await JourneyService(session).pause_journey(journey_id, request.reason)
    return JourneyStatusResponse(journey_id=journey_id, status=JourneyStatus.PAUSED)


@router.post("/{journey_id}/resume", response_model=JourneyStatusResponse)
async def resume_journey(journey_id: uuid.UUID):
    async with get_session_factory()() as session:
        await JourneyService(session).resume_journey(journey_id)
    return JourneyStatusResponse(journey_id=journey_id, status=JourneyStatus.IN_PROGRESS)


@router.post("/{journey_id}/phases", status_code=201)
async def add_phase(journey_id: uuid.UUID, request: AddPhaseRequest):
    """Insert a phase into a new hire journey.

    Raises:
        409: recurring or completed journey, or slot before the active phase
    """
    async with get_session_factory()() as session:
        phase_id = await JourneyAdminService(session).add_phase(
            journey_id, request.phase.to_config(), request.insert_after
        )
    return {"phase_id": str(phase_id)}


@router.post("/{journey_id}/phases/{phase_number}/skip", response_model=AdvanceResponse)
async def skip_phase(
    journey_id: uuid.UUID,
    phase_number: int,
    request: SkipPhaseRequest,
    notifier: JourneyNotifier = Depends(get_notifier),
):
    """Skip the active phase and advance.

    Raises:
        404: no such phase
        409: phase is completed or not the active one
    """
    advanced = await run_with_conflict_retry(
        get_session_factory(),
        lambda service: service.skip_phase(journey_id, phase_number, request.skipped_by, request.reason),
        service_class=JourneyAdminService,
        notifier=notifier,
        journey_id=str(journey_id),
    )
    return AdvanceResponse(advanced=advanced)
