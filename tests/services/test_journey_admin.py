"""Tests for JourneyAdminService: creation guard, structural edits, mentors."""

import asyncio
import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from skill_loop.core.exceptions import (
    ActiveJourneyExistsError,
    InvalidTransitionError,
    PhaseConfigError,
    PhaseEditNotAllowedError,
    PhaseNotFoundError,
    UserNotFoundError,
)
from skill_loop.db.models.employee_journey import EmployeeJourney
from skill_loop.db.models.journey_activity import JourneyActivity
from skill_loop.db.models.journey_phase import JourneyPhase
from skill_loop.domain.journeys import (
    ActivityType,
    EmployeeCategory,
    JourneyStatus,
    PhaseStatus,
    PhaseType,
    SystemTrigger,
)
from skill_loop.domain.templates import PhaseConfig
from skill_loop.services.journey_admin_service import JourneyAdminService
from skill_loop.services.overdue_sweeper import check_overdue_phases

START = datetime(2024, 3, 4, tzinfo=UTC)


def _phases(*durations: int) -> list[PhaseConfig]:
    return [PhaseConfig(PhaseType.INDUCTION_TRAINING, f"Step {i}", d) for i, d in enumerate(durations, start=1)]


async def _phases_of(session_factory, journey_id: uuid.UUID) -> list[JourneyPhase]:
    async with session_factory() as s:
        result = await s.execute(
            select(JourneyPhase).where(JourneyPhase.journey_id == journey_id).order_by(JourneyPhase.phase_number)
        )
        return list(result.scalars().all())


async def _last_activity(session_factory, journey_id: uuid.UUID) -> JourneyActivity:
    async with session_factory() as s:
        result = await s.execute(
            select(JourneyActivity)
            .where(JourneyActivity.journey_id == journey_id)
            .order_by(JourneyActivity.sequence.desc())
            .limit(1)
        )
        return result.scalar_one()


@pytest.fixture
def admin(session, notifier) -> JourneyAdminService:
    return JourneyAdminService(session, notifier)


@pytest.fixture
async def new_hire(admin, make_user) -> uuid.UUID:
    """NEW_HIRE journey with three phases of 2, 4 and 6 days starting START."""
    return await admin.create_journey(await make_user(), EmployeeCategory.NEW_HIRE, _phases(2, 4, 6), START)


async def test_create_refuses_second_open_journey(admin, make_user):
    user_id = await make_user()
    first = await admin.create_journey(user_id, EmployeeCategory.NEW_HIRE)

    with pytest.raises(ActiveJourneyExistsError) as excinfo:
        await admin.create_journey(user_id, EmployeeCategory.RECURRING)
    assert excinfo.value.journey_id == first


async def test_create_allowed_after_completion(admin, make_user):
    user_id = await make_user()
    first = await admin.create_journey(user_id, EmployeeCategory.NEW_HIRE, _phases(1))
    await admin.auto_advance_phase(first, SystemTrigger(source="test"))

    second = await admin.create_journey(user_id, EmployeeCategory.RECURRING)
    assert second != first


async def test_paused_journey_blocks_a_new_one(admin, make_user, session_factory):
    user_id = await make_user()
    first = await admin.create_journey(user_id, EmployeeCategory.NEW_HIRE)
    await admin.pause_journey(first)

    with pytest.raises(ActiveJourneyExistsError) as excinfo:
        await admin.create_journey(user_id, EmployeeCategory.RECURRING)
    assert excinfo.value.journey_id == first

    await admin.resume_journey(first)
    async with session_factory() as s:
        result = await s.execute(select(EmployeeJourney.status).where(EmployeeJourney.user_id == user_id))
        statuses = list(result.scalars().all())
    assert statuses == [JourneyStatus.IN_PROGRESS]


async def test_concurrent_creates_leave_one_journey(make_user, session_factory):
    """Two racing creates for one user: one journey, the other request refused."""
    user_id = await make_user()

    async def create() -> uuid.UUID:
        async with session_factory() as s:
            return await JourneyAdminService(s).create_journey(user_id, EmployeeCategory.NEW_HIRE)

    results = await asyncio.gather(create(), create(), return_exceptions=True)

    created = [r for r in results if isinstance(r, uuid.UUID)]
    refused = [r for r in results if isinstance(r, BaseException)]
    assert len(created) == 1
    assert len(refused) == 1
    # PostgreSQL serializes on the user row lock; SQLite trips the user version check
    assert isinstance(refused[0], (ActiveJourneyExistsError, StaleDataError, OperationalError))

    async with session_factory() as s:
        result = await s.execute(select(EmployeeJourney.id).where(EmployeeJourney.user_id == user_id))
        assert list(result.scalars().all()) == created


async def test_add_phase_appends_after_last_due_date(admin, new_hire, session_factory):
    config = PhaseConfig(PhaseType.FEEDBACK_COLLECTION, "Retro", 3)
    phase_id = await admin.add_phase(new_hire, config)

    phases = await _phases_of(session_factory, new_hire)
    assert [p.phase_number for p in phases] == [1, 2, 3, 4]
    assert phases[-1].id == phase_id
    assert phases[-1].status == PhaseStatus.NOT_STARTED
    assert phases[-1].due_date == START + timedelta(days=15)

    activity = await _last_activity(session_factory, new_hire)
    assert activity.activity_type == ActivityType.PHASE_ADDED
    assert activity.phase_number == 4


async def test_add_phase_in_the_middle_shifts_later_numbers(admin, new_hire, session_factory):
    before = await _phases_of(session_factory, new_hire)
    config = PhaseConfig(PhaseType.SKILL_ASSESSMENT, "Checkpoint", 1)

    await admin.add_phase(new_hire, config, insert_after=1)

    phases = await _phases_of(session_factory, new_hire)
    assert [p.title for p in phases] == ["Step 1", "Checkpoint", "Step 2", "Step 3"]
    assert [p.phase_number for p in phases] == [1, 2, 3, 4]
    # Existing due dates are not moved
    assert [p.due_date for p in phases if p.title != "Checkpoint"] == [p.due_date for p in before]
    assert phases[1].due_date == before[0].due_date + timedelta(days=1)


async def test_add_phase_before_active_phase_rejected(admin, new_hire):
    await admin.auto_advance_phase(new_hire, SystemTrigger(source="test"))  # phase 2 now active

    with pytest.raises(PhaseEditNotAllowedError):
        await admin.add_phase(new_hire, PhaseConfig(PhaseType.SKILL_ASSESSMENT, "Late", 1), insert_after=1)


async def test_add_phase_out_of_range(admin, new_hire):
    with pytest.raises(PhaseConfigError):
        await admin.add_phase(new_hire, PhaseConfig(PhaseType.SKILL_ASSESSMENT, "Far", 1), insert_after=9)


async def test_structural_edits_refused_on_recurring(admin, make_user, session_factory):
    journey_id = await admin.create_journey(await make_user(), EmployeeCategory.RECURRING)
    phases = await _phases_of(session_factory, journey_id)

    with pytest.raises(PhaseEditNotAllowedError):
        await admin.add_phase(journey_id, PhaseConfig(PhaseType.SKILL_ASSESSMENT, "Extra", 1))
    with pytest.raises(PhaseEditNotAllowedError):
        await admin.delete_phase(phases[-1].id)


async def test_delete_phase_renumbers(admin, new_hire, session_factory):
    phases = await _phases_of(session_factory, new_hire)

    await admin.delete_phase(phases[1].id)

    remaining = await _phases_of(session_factory, new_hire)
    assert [(p.phase_number, p.title) for p in remaining] == [(1, "Step 1"), (2, "Step 3")]
    activity = await _last_activity(session_factory, new_hire)
    assert activity.activity_type == ActivityType.PHASE_DELETED
    assert activity.detail == {"phase_number": 2, "title": "Step 2"}


async def test_delete_started_phase_rejected(admin, new_hire, session_factory):
    phases = await _phases_of(session_factory, new_hire)
    with pytest.raises(PhaseEditNotAllowedError):
        await admin.delete_phase(phases[0].id)


async def test_skip_active_phase(admin, new_hire, session_factory):
    assert await admin.skip_phase(new_hire, 1, skipped_by="admin-2", reason="Prior experience") is True

    phases = await _phases_of(session_factory, new_hire)
    assert [p.status for p in phases[:2]] == [PhaseStatus.COMPLETED, PhaseStatus.IN_PROGRESS]

    async with session_factory() as s:
        result = await s.execute(
            select(JourneyActivity).where(
                JourneyActivity.journey_id == new_hire,
                JourneyActivity.activity_type == ActivityType.PHASE_AUTO_COMPLETED,
            )
        )
        completed = result.scalar_one()
    assert completed.detail["trigger"] == {"kind": "phase_skipped", "by": "admin-2", "reason": "Prior experience"}


async def test_skip_rejects_completed_and_future_phases(admin, new_hire):
    await admin.skip_phase(new_hire, 1)

    with pytest.raises(InvalidTransitionError):
        await admin.skip_phase(new_hire, 1)
    with pytest.raises(InvalidTransitionError):
        await admin.skip_phase(new_hire, 3)
    with pytest.raises(PhaseNotFoundError):
        await admin.skip_phase(new_hire, 7)


async def test_update_duration_moves_only_this_due_date(admin, new_hire, session_factory):
    before = await _phases_of(session_factory, new_hire)

    await admin.update_phase_details(before[0].id, title="Orientation", duration_days=5)

    after = await _phases_of(session_factory, new_hire)
    assert after[0].title == "Orientation"
    assert after[0].duration_days == 5
    assert after[0].due_date == START + timedelta(days=5)
    assert [p.due_date for p in after[1:]] == [p.due_date for p in before[1:]]

    activity = await _last_activity(session_factory, new_hire)
    assert activity.activity_type == ActivityType.PHASE_UPDATED
    assert activity.detail["title"] == "Orientation"
    assert activity.detail["duration_days"] == 5


async def test_update_not_started_phase_keeps_due_date(admin, new_hire, session_factory):
    before = await _phases_of(session_factory, new_hire)
    await admin.update_phase_details(before[2].id, duration_days=10)

    after = await _phases_of(session_factory, new_hire)
    assert after[2].duration_days == 10
    assert after[2].due_date == before[2].due_date


async def test_extending_an_overdue_phase_reactivates_it(admin, new_hire, session_factory):
    now = START + timedelta(days=5)
    await check_overdue_phases(session_factory, now=now)
    first = (await _phases_of(session_factory, new_hire))[0]
    assert first.status == PhaseStatus.OVERDUE

    # New due date still in the past: stays OVERDUE
    await admin.update_phase_details(first.id, duration_days=3, now=now)
    assert (await _phases_of(session_factory, new_hire))[0].status == PhaseStatus.OVERDUE

    await admin.update_phase_details(first.id, duration_days=10, now=now)

    first = (await _phases_of(session_factory, new_hire))[0]
    assert first.status == PhaseStatus.IN_PROGRESS
    assert first.due_date == START + timedelta(days=10)
    activity = await _last_activity(session_factory, new_hire)
    assert activity.detail["status"] == "IN_PROGRESS"

    # Flagged again once the extended due date passes
    assert await check_overdue_phases(session_factory, now=START + timedelta(days=11)) == 1


async def test_update_completed_phase_rejected(admin, new_hire, session_factory):
    phases = await _phases_of(session_factory, new_hire)
    await admin.auto_advance_phase(new_hire, SystemTrigger(source="test"))

    with pytest.raises(PhaseEditNotAllowedError):
        await admin.update_phase_details(phases[0].id, title="Too late")


async def test_update_with_no_changes_logs_nothing(admin, new_hire, session_factory):
    phases = await _phases_of(session_factory, new_hire)
    before = await _last_activity(session_factory, new_hire)

    await admin.update_phase_details(phases[0].id, title=phases[0].title)

    assert (await _last_activity(session_factory, new_hire)).id == before.id


async def test_assign_and_remove_mentor(admin, new_hire, make_user, session_factory, notifier):
    mentor_id = await make_user(name="Grace Mentor")
    phases = await _phases_of(session_factory, new_hire)

    await admin.assign_mentor(phases[0].id, mentor_id)

    assert (await _phases_of(session_factory, new_hire))[0].mentor_id == mentor_id
    activity = await _last_activity(session_factory, new_hire)
    assert activity.activity_type == ActivityType.MENTOR_ASSIGNED
    assert activity.description == "Grace Mentor assigned as mentor for Step 1"
    assert notifier.of("mentor_assigned") == [("mentor_assigned", "Step 1", mentor_id)]

    await admin.remove_mentor(phases[0].id)
    assert (await _phases_of(session_factory, new_hire))[0].mentor_id is None
    assert (await _last_activity(session_factory, new_hire)).activity_type == ActivityType.MENTOR_REMOVED


async def test_assign_unknown_mentor(admin, new_hire, session_factory):
    phases = await _phases_of(session_factory, new_hire)
    with pytest.raises(UserNotFoundError):
        await admin.assign_mentor(phases[0].id, uuid.uuid4())
