"""Reminder API endpoints.

Handlers are async so that every scheduler call runs on the event loop
that owns the job registry.
"""

from fastapi import APIRouter, HTTPException, status

from app.api.deps import CurrentUser, DBSession, Reminders, raise_http_error
from app.models.reminder import (
    CustomReminderCreate,
    CustomReminderResponse,
    ReminderCreate,
    ReminderResponse,
    ReminderUpdate,
    SchedulerStatus,
)
from app.services.errors import ServiceError
from app.services.reminders import to_utc_naive

router = APIRouter(prefix="/api/reminders", tags=["Reminders"])


@router.get("/status", response_model=SchedulerStatus)
async def scheduler_status_endpoint(
    current_user: CurrentUser,
    reminders: Reminders,
) -> SchedulerStatus:
    return reminders.get_status()


@router.post("/schedule", response_model=CustomReminderResponse, status_code=status.HTTP_201_CREATED)
async def schedule_custom_reminder_endpoint(
    current_user: CurrentUser,
    reminders: Reminders,
    data: CustomReminderCreate,
) -> CustomReminderResponse:
    """Schedule an ad-hoc reminder that is not stored."""
    try:
        job_id = reminders.schedule_custom_reminder(
            current_user.id,
            data.message,
            data.scheduled_at,
            related_id=data.related_id,
            related_type=data.related_type,
        )
    except ServiceError as e:
        raise_http_error(e)

    return CustomReminderResponse(job_id=job_id, scheduled_at=to_utc_naive(data.scheduled_at))


@router.delete("/job/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_job_endpoint(
    current_user: CurrentUser,
    reminders: Reminders,
    job_id: str,
) -> None:
    """Cancel an ad-hoc reminder job owned by the caller."""
    if not job_id.startswith(f"reminder_{current_user.id}_") or not reminders.cancel_reminder(job_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reminder job not found",
        )


@router.post("", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    reminders: Reminders,
    data: ReminderCreate,
) -> ReminderResponse:
    try:
        reminder = reminders.create_reminder(
            session,
            current_user.id,
            data.title,
            data.scheduled_at,
            description=data.description,
            related_id=data.related_id,
            related_type=data.related_type,
        )
    except ServiceError as e:
        raise_http_error(e)

    return ReminderResponse.model_validate(reminder)


@router.get("", response_model=list[ReminderResponse])
async def list_reminders_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    reminders: Reminders,
) -> list[ReminderResponse]:
    return [
        ReminderResponse.model_validate(r)
        for r in reminders.list_for_user(session, current_user.id)
    ]


@router.get("/{reminder_id}", response_model=ReminderResponse)
async def get_reminder_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    reminders: Reminders,
    reminder_id: int,
) -> ReminderResponse:
    try:
        reminder = reminders.get_reminder(session, reminder_id, current_user.id)
    except ServiceError as e:
        raise_http_error(e)

    return ReminderResponse.model_validate(reminder)


@router.put("/{reminder_id}", response_model=ReminderResponse)
async def update_reminder_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    reminders: Reminders,
    reminder_id: int,
    data: ReminderUpdate,
) -> ReminderResponse:
    try:
        reminder = reminders.update_reminder(session, reminder_id, data, current_user.id)
    except ServiceError as e:
        raise_http_error(e)

    return ReminderResponse.model_validate(reminder)


@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reminder_endpoint(
    session: DBSession,
    current_user: CurrentUser,
    reminders: Reminders,
    reminder_id: int,
) -> None:
    try:
        reminders.delete_reminder(session, reminder_id, current_user.id)
    except ServiceError as e:
        raise_http_error(e)
