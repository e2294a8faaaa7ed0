from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from src.market.application.leasing import LeaseManager
from src.market.application.lifecycle import TaskLifecycleController
from src.market.domain.models import (
    Actor,
    LeaseGrant,
    Review,
    ReviewDecision,
    Task,
    TaskPage,
    TaskStatus,
)
from src.market.presentation.dependencies import get_actor
from src.setup.api_config import get_api_settings
from src.setup.lease_config import get_lease_settings

router = APIRouter(tags=["tasks"])

# Instantiate services once (simple DI)
_settings = get_api_settings()
_lease_settings = get_lease_settings()
_lease_manager = LeaseManager()
_lifecycle = TaskLifecycleController()


class LeaseRequest(BaseModel):
    lease_duration_minutes: int | None = Field(
        default=None,
        ge=_lease_settings.MIN_LEASE_MINUTES,
        le=_lease_settings.MAX_LEASE_MINUTES,
        description="How long the lease lasts; defaults to the configured duration.",
    )


class SubmitRequest(BaseModel):
    lease_token: str = Field(..., min_length=1, description="Token returned by the lease call.")
    annotation_data: dict[str, Any] = Field(..., description="Labeling document for the asset.")


class AcceptRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class RejectRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class ReviewRequest(BaseModel):
    task_id: str
    decision: ReviewDecision
    notes: str | None = Field(default=None, max_length=2000)


class GenerateTasksRequest(BaseModel):
    asset_ids: list[str] = Field(..., min_length=1, description="Assets to create tasks for.")


class GenerateTasksResponse(BaseModel):
    count: int
    tasks: list[Task]


class ReleaseExpiredResponse(BaseModel):
    released_count: int = Field(..., description="Leases returned to the pool by this sweep.")


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/tasks", response_model=TaskPage, summary="List tasks")
async def list_tasks(
    contract_id: str | None = Query(default=None),
    status: TaskStatus | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=_settings.DEFAULT_PAGE_SIZE, ge=1, le=_settings.MAX_PAGE_SIZE),
    actor: Actor = Depends(get_actor),
):
    """
    Tasks of the caller's contracts, oldest first. Admins see all tasks.
    """
    return await _lifecycle.list_tasks(
        actor, contract_id=contract_id, status=status, page=page, limit=limit
    )


@router.get("/tasks/{task_id}", response_model=Task, summary="Get a task")
async def get_task(task_id: str, actor: Actor = Depends(get_actor)):
    return await _lifecycle.get_task(task_id, actor)


@router.post(
    "/contracts/{contract_id}/tasks",
    response_model=GenerateTasksResponse,
    status_code=201,
    summary="Generate tasks for a contract",
)
async def generate_tasks(
    contract_id: str, body: GenerateTasksRequest, actor: Actor = Depends(get_actor)
):
    tasks = await _lifecycle.generate_tasks(contract_id, body.asset_ids, actor)
    return GenerateTasksResponse(count=len(tasks), tasks=tasks)


@router.post(
    "/tasks/release-expired",
    response_model=ReleaseExpiredResponse,
    summary="Release expired leases",
    description="Returns every task whose lease has expired to the ready pool. Admin only.",
)
async def release_expired(actor: Actor = Depends(get_actor)):
    released = await _lease_manager.sweep_expired(actor)
    return ReleaseExpiredResponse(released_count=released)


@router.post(
    "/tasks/{task_id}/lease",
    response_model=LeaseGrant,
    summary="Lease a task",
    responses={
        400: {"description": "Task is not in a leasable status."},
        403: {"description": "Caller is not the contract's labeler."},
        409: {"description": "Another caller leased the task first."},
    },
)
async def lease_task(
    task_id: str, body: LeaseRequest | None = None, actor: Actor = Depends(get_actor)
):
    """
    Locks the task for the caller and returns the lease token needed to submit.
    """
    minutes = body.lease_duration_minutes if body is not None else None
    return await _lease_manager.acquire(task_id, actor, minutes)


@router.post(
    "/tasks/{task_id}/submit",
    response_model=Task,
    summary="Submit an annotation",
    responses={
        403: {"description": "Wrong role or lease token."},
        410: {"description": "The lease expired; lease the task again."},
    },
)
async def submit_task(task_id: str, body: SubmitRequest, actor: Actor = Depends(get_actor)):
    return await _lease_manager.submit(task_id, body.lease_token, body.annotation_data, actor)


@router.patch("/tasks/{task_id}/accept", response_model=Task, summary="Accept a task (QC)")
async def accept_task(
    task_id: str, body: AcceptRequest | None = None, actor: Actor = Depends(get_actor)
):
    notes = body.notes if body is not None else None
    return await _lifecycle.accept(task_id, actor, notes)


@router.patch("/tasks/{task_id}/reject", response_model=Task, summary="Reject a task (QC)")
async def reject_task(
    task_id: str, body: RejectRequest | None = None, actor: Actor = Depends(get_actor)
):
    """
    Rejects the submission; the task goes back to ``ready`` for another attempt.
    """
    reason = body.reason if body is not None else None
    return await _lifecycle.reject(task_id, actor, reason)


@router.post("/reviews", response_model=Review, status_code=201, summary="Create a review")
async def create_review(body: ReviewRequest, actor: Actor = Depends(get_actor)):
    return await _lifecycle.create_review(body.task_id, actor, body.decision, body.notes)
