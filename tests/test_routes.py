from datetime import UTC, datetime, timedelta

from src.market.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    LeaseExpiredError,
    MarketError,
    NotFoundError,
)
from src.market.domain.models import TaskLease, TaskStatus
from src.market.presentation.errors import status_code_for


def test_health(api_client) -> None:
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_missing_identity_headers_is_unauthorized(api_client, ready_task) -> None:
    response = api_client.get(f"/tasks/{ready_task.id}")

    assert response.status_code == 401


def test_unknown_role_is_unauthorized(api_client, ready_task) -> None:
    response = api_client.get(
        f"/tasks/{ready_task.id}", headers={"X-User-Id": "u-1", "X-User-Role": "wizard"}
    )

    assert response.status_code == 401


def test_lease_submit_accept_flow(api_client, ready_task, labeler, client_actor, as_headers) -> None:
    lease = api_client.post(
        f"/tasks/{ready_task.id}/lease",
        json={"lease_duration_minutes": 15},
        headers=as_headers(labeler),
    )
    assert lease.status_code == 200
    body = lease.json()
    assert body["task"]["status"] == "leased"
    assert body["task"]["lease"]["labeler_user_id"] == labeler.user_id
    token = body["lease_token"]

    submitted = api_client.post(
        f"/tasks/{ready_task.id}/submit",
        json={"lease_token": token, "annotation_data": {"labels": ["cat"]}},
        headers=as_headers(labeler),
    )
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "submitted"
    assert submitted.json()["attempt_count"] == 1

    accepted = api_client.patch(
        f"/tasks/{ready_task.id}/accept",
        json={"notes": "great"},
        headers=as_headers(client_actor),
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"


def test_lease_without_body_uses_default_duration(
    api_client, ready_task, labeler, as_headers
) -> None:
    response = api_client.post(f"/tasks/{ready_task.id}/lease", headers=as_headers(labeler))

    assert response.status_code == 200
    body = response.json()
    leased_until = datetime.fromisoformat(body["leased_until"])
    remaining = leased_until - datetime.now(UTC)
    assert timedelta(minutes=29) < remaining <= timedelta(minutes=30)


def test_lease_duration_out_of_range_is_unprocessable(
    api_client, ready_task, labeler, as_headers
) -> None:
    response = api_client.post(
        f"/tasks/{ready_task.id}/lease",
        json={"lease_duration_minutes": 500},
        headers=as_headers(labeler),
    )

    assert response.status_code == 422


def test_error_statuses(api_client, ready_task, labeler, other_labeler, as_headers) -> None:
    missing = api_client.post("/tasks/nope/lease", headers=as_headers(labeler))
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"

    forbidden = api_client.post(f"/tasks/{ready_task.id}/lease", headers=as_headers(other_labeler))
    assert forbidden.status_code == 403

    api_client.post(f"/tasks/{ready_task.id}/lease", headers=as_headers(labeler))
    again = api_client.post(f"/tasks/{ready_task.id}/lease", headers=as_headers(labeler))
    assert again.status_code == 400
    assert again.json()["code"] == "invalid_state"

    wrong_token = api_client.post(
        f"/tasks/{ready_task.id}/submit",
        json={"lease_token": "bogus", "annotation_data": {}},
        headers=as_headers(labeler),
    )
    assert wrong_token.status_code == 403


def test_submit_after_expiry_is_gone(api_client, store, ready_task, labeler, as_headers) -> None:
    store.tasks[ready_task.id] = ready_task.model_copy(update={"status": TaskStatus.LEASED})
    store.leases[ready_task.id] = TaskLease(
        task_id=ready_task.id,
        labeler_user_id=labeler.user_id,
        lease_token="expired-token",
        leased_until=datetime.now(UTC) - timedelta(minutes=1),
    )

    response = api_client.post(
        f"/tasks/{ready_task.id}/submit",
        json={"lease_token": "expired-token", "annotation_data": {"labels": []}},
        headers=as_headers(labeler),
    )

    assert response.status_code == 410
    assert response.json()["code"] == "lease_expired"


def test_release_expired_is_admin_only(
    api_client, store, ready_task, labeler, admin, as_headers
) -> None:
    store.tasks[ready_task.id] = ready_task.model_copy(update={"status": TaskStatus.LEASED})
    store.leases[ready_task.id] = TaskLease(
        task_id=ready_task.id,
        labeler_user_id=labeler.user_id,
        lease_token="old",
        leased_until=datetime.now(UTC) - timedelta(minutes=5),
    )

    denied = api_client.post("/tasks/release-expired", headers=as_headers(labeler))
    assert denied.status_code == 403

    released = api_client.post("/tasks/release-expired", headers=as_headers(admin))
    assert released.status_code == 200
    assert released.json() == {"released_count": 1}
    assert store.tasks[ready_task.id].status == TaskStatus.READY


def test_generate_tasks_and_list(api_client, contract, client_actor, as_headers) -> None:
    created = api_client.post(
        f"/contracts/{contract.id}/tasks",
        json={"asset_ids": ["a-1", "a-2", "a-3"]},
        headers=as_headers(client_actor),
    )
    assert created.status_code == 201
    assert created.json()["count"] == 3

    duplicate = api_client.post(
        f"/contracts/{contract.id}/tasks",
        json={"asset_ids": ["a-4"]},
        headers=as_headers(client_actor),
    )
    assert duplicate.status_code == 409

    listing = api_client.get(
        "/tasks",
        params={"contract_id": contract.id, "limit": 2},
        headers=as_headers(client_actor),
    )
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert len(body["items"]) == 2


def test_reject_and_review_endpoints(
    api_client, ready_task, labeler, client_actor, as_headers
) -> None:
    def lease_and_submit() -> None:
        token = api_client.post(
            f"/tasks/{ready_task.id}/lease", headers=as_headers(labeler)
        ).json()["lease_token"]
        api_client.post(
            f"/tasks/{ready_task.id}/submit",
            json={"lease_token": token, "annotation_data": {"labels": ["x"]}},
            headers=as_headers(labeler),
        )

    lease_and_submit()
    rejected = api_client.patch(
        f"/tasks/{ready_task.id}/reject",
        json={"reason": "wrong class"},
        headers=as_headers(client_actor),
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "ready"

    lease_and_submit()
    review = api_client.post(
        "/reviews",
        json={"task_id": ready_task.id, "decision": "accept", "notes": "fixed"},
        headers=as_headers(client_actor),
    )
    assert review.status_code == 201
    assert review.json()["decision"] == "accept"

    task = api_client.get(f"/tasks/{ready_task.id}", headers=as_headers(client_actor)).json()
    assert task["status"] == "accepted"
    assert task["attempt_count"] == 2


def test_status_code_for_market_errors() -> None:
    assert status_code_for(NotFoundError("Task", "t-1")) == 404
    assert status_code_for(ForbiddenError("no")) == 403
    assert status_code_for(InvalidStateError("no", status="ready")) == 400
    assert status_code_for(ConflictError("no")) == 409
    assert status_code_for(LeaseExpiredError("t-1")) == 410
    assert status_code_for(MarketError("unclassified")) == 500
