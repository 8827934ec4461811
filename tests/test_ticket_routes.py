from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from adatickets.dependencies import tickets as ticket_deps
from adatickets.dependencies.auth import AuthenticatedUser
from adatickets.lifecycle import (
    EditRecord,
    InvalidTransitionError,
    NoAvailableOperatorError,
    NotificationRecord,
    Role,
    TicketStatus,
    UnauthorizedTransitionError,
)
from adatickets.main import create_app
from adatickets.tickets.models import Platform, Priority, Ticket, TicketAggregate, TicketType, User
from adatickets.tickets.errors import (
    DuplicateEntityError,
    NotificationNotFoundError,
    PermissionDeniedError,
    TicketConflictError,
    TicketNotFoundError,
    UserNotFoundError,
)


def _make_ticket(*, status: TicketStatus = TicketStatus.WAITING_OPERATOR) -> Ticket:
    now = datetime.now(timezone.utc)
    return Ticket(
        id="ticket-1",
        type=TicketType.BUG,
        title="Login fails",
        description="The login page returns 500",
        priority=Priority.LOW,
        status=status,
        platform_id="platform-1",
        creator_user_id="user",
        operator_user_id="operator",
        created_at=now,
        updated_at=now,
    )


def _make_aggregate(*, status: TicketStatus = TicketStatus.WAITING_OPERATOR) -> TicketAggregate:
    ticket = _make_ticket(status=status)
    edit = EditRecord(
        id="edit-1",
        ticket_id=ticket.id,
        user_id="user",
        description="Ticket created",
        old_status=TicketStatus.UNASSIGNED,
        new_status=status,
        created_at=ticket.created_at,
    )
    return TicketAggregate(ticket=ticket, edits=[edit])


@pytest.fixture
def ticket_client():
    app = create_app()
    service = AsyncMock()

    user = AuthenticatedUser("user", (Role.USER,))
    operator = AuthenticatedUser("operator", (Role.OPERATOR, Role.USER))
    admin = AuthenticatedUser("admin", (Role.ADMIN, Role.OPERATOR, Role.USER))

    async def override_service():
        return service

    app.dependency_overrides[ticket_deps.get_ticket_service] = override_service
    app.dependency_overrides[ticket_deps.require_user] = lambda: user
    app.dependency_overrides[ticket_deps.require_operator] = lambda: operator
    app.dependency_overrides[ticket_deps.require_admin] = lambda: admin

    client = TestClient(app)
    try:
        yield client, service
    finally:
        app.dependency_overrides.clear()


def test_create_ticket_endpoint_returns_created(ticket_client):
    client, service = ticket_client
    service.create_ticket = AsyncMock(return_value=_make_aggregate())

    response = client.post(
        "/tickets",
        json={"platform_id": "platform-1", "title": "Login fails", "description": "500", "priority": "high"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["id"] == "ticket-1"
    assert body["status"] == "waiting_operator"
    assert body["edits"][0]["new_status"] == "waiting_operator"
    kwargs = service.create_ticket.await_args.kwargs
    assert kwargs["creator_user_id"] == "user"
    assert kwargs["priority"] == Priority.HIGH


def test_create_ticket_validates_title_length(ticket_client):
    client, service = ticket_client

    response = client.post("/tickets", json={"platform_id": "platform-1", "title": "x" * 51, "description": "d"})

    assert response.status_code == 422
    service.create_ticket.assert_not_called()


def test_list_tickets_endpoint_filters_by_status(ticket_client):
    client, service = ticket_client
    service.list_tickets = AsyncMock(return_value=[_make_ticket(status=TicketStatus.CLOSED)])

    response = client.get("/tickets", params={"status": "closed"})

    assert response.status_code == 200
    assert [item["status"] for item in response.json()] == ["closed"]
    service.list_tickets.assert_awaited_once_with(status=TicketStatus.CLOSED)


def test_get_ticket_not_found(ticket_client):
    client, service = ticket_client
    service.get_ticket = AsyncMock(side_effect=TicketNotFoundError("Ticket missing not found"))

    response = client.get("/tickets/missing")

    assert response.status_code == 404


def test_reply_endpoint_passes_message(ticket_client):
    client, service = ticket_client
    service.reply = AsyncMock(return_value=_make_aggregate(status=TicketStatus.WAITING_USER))

    response = client.post("/tickets/ticket-1/replies", json={"message": "Share the logs please"})

    assert response.status_code == 201
    assert response.json()["status"] == "waiting_user"
    service.reply.assert_awaited_once_with("ticket-1", actor_id="user", message="Share the logs please")


@pytest.mark.parametrize(
    ("error", "expected_status"),
    [
        (InvalidTransitionError("Cannot close ticket in status unassigned"), 409),
        (UnauthorizedTransitionError("Only operators or admins can close tickets"), 403),
        (NoAvailableOperatorError("No operator prefers this platform, retry later"), 409),
        (TicketConflictError("Ticket ticket-1 was modified concurrently"), 409),
        (TicketNotFoundError("Ticket ticket-1 not found"), 404),
    ],
)
def test_close_endpoint_maps_errors(ticket_client, error, expected_status):
    client, service = ticket_client
    service.close = AsyncMock(side_effect=error)

    response = client.post("/tickets/ticket-1/close")

    assert response.status_code == expected_status
    assert response.json()["detail"] == str(error)


def test_assign_and_reassign_use_operator_identity(ticket_client):
    client, service = ticket_client
    service.assign = AsyncMock(return_value=_make_aggregate())
    service.reassign = AsyncMock(return_value=_make_aggregate())

    assert client.post("/tickets/ticket-1/assign", json={}).status_code == 200
    assert client.post("/tickets/ticket-1/reassign", json={"operator_user_id": "op-2"}).status_code == 200

    service.assign.assert_awaited_once_with("ticket-1", actor_id="operator", operator_user_id=None)
    service.reassign.assert_awaited_once_with("ticket-1", actor_id="operator", operator_user_id="op-2")


def test_edit_ticket_requires_fields(ticket_client):
    client, service = ticket_client
    service.edit_ticket = AsyncMock(return_value=_make_aggregate())

    assert client.patch("/tickets/ticket-1", json={}).status_code == 422
    assert client.patch("/tickets/ticket-1", json={"title": None, "priority": None}).status_code == 422
    service.edit_ticket.assert_not_awaited()

    response = client.patch("/tickets/ticket-1", json={"title": "Login fails on Safari"})

    assert response.status_code == 200
    kwargs = service.edit_ticket.await_args.kwargs
    assert kwargs["title"] == "Login fails on Safari"
    assert kwargs["priority"] is None


def test_delete_ticket_endpoint(ticket_client):
    client, service = ticket_client
    service.delete_ticket = AsyncMock(return_value=None)

    response = client.delete("/tickets/ticket-1")

    assert response.status_code == 204
    service.delete_ticket.assert_awaited_once_with("ticket-1", actor_id="operator")


def test_list_edits_endpoint(ticket_client):
    client, service = ticket_client
    service.list_edits = AsyncMock(return_value=list(_make_aggregate().edits))

    response = client.get("/tickets/ticket-1/edits")

    assert response.status_code == 200
    assert response.json()[0]["old_status"] == "unassigned"


def test_notifications_endpoints(ticket_client):
    client, service = ticket_client
    notification = NotificationRecord(
        id="n-1",
        ticket_id="ticket-1",
        edit_id="edit-1",
        user_id="user",
        message="Your ticket was closed",
        created_at=datetime.now(timezone.utc),
    )
    service.list_notifications = AsyncMock(return_value=[notification])
    service.mark_notification_read = AsyncMock(side_effect=NotificationNotFoundError("Notification n-2 not found"))

    listing = client.get("/notifications", params={"unread": "true"})
    missing = client.post("/notifications/n-2/read")

    assert listing.status_code == 200
    assert listing.json()[0]["message"] == "Your ticket was closed"
    service.list_notifications.assert_awaited_once_with("user", unread_only=True)
    assert missing.status_code == 404


def test_platform_and_user_admin_endpoints(ticket_client):
    client, service = ticket_client
    service.create_platform = AsyncMock(return_value=Platform("platform-2", "Docs", "https://example.org/docs"))
    service.create_user = AsyncMock(return_value=User("op-3", "operator three", Role.OPERATOR))
    service.set_platform_preference = AsyncMock(return_value=None)

    platform = client.post("/platforms", json={"name": "Docs", "repository_url": "https://example.org/docs"})
    user = client.post("/users", json={"username": "operator three", "role": "operator", "id": "op-3"})
    preference = client.put("/platforms/platform-2/preference")

    assert platform.status_code == 201
    assert platform.json()["id"] == "platform-2"
    assert user.status_code == 201
    assert user.json()["role"] == "operator"
    assert preference.status_code == 204
    service.set_platform_preference.assert_awaited_once_with("platform-2", actor_id="operator", preferred=True)


def test_duplicate_platform_and_user_return_conflict(ticket_client):
    client, service = ticket_client
    service.create_platform = AsyncMock(side_effect=DuplicateEntityError("Platform 'Docs' already exists"))
    service.create_user = AsyncMock(side_effect=DuplicateEntityError("User 'creator' already exists"))

    platform = client.post("/platforms", json={"name": "Docs", "repository_url": "https://example.org/docs"})
    user = client.post("/users", json={"username": "creator"})

    assert platform.status_code == 409
    assert platform.json()["detail"] == "Platform 'Docs' already exists"
    assert user.status_code == 409


def test_user_management_endpoints(ticket_client):
    client, service = ticket_client
    service.list_users = AsyncMock(return_value=[User("op-1", "operator one", Role.OPERATOR)])
    service.update_user = AsyncMock(return_value=User("op-1", "operator one", Role.OPERATOR, is_active=False))
    service.list_preferred_platforms = AsyncMock(
        return_value=[Platform("platform-1", "ADAtickets", "https://example.org/repo")]
    )

    listing = client.get("/users")
    empty = client.patch("/users/op-1", json={})
    updated = client.patch("/users/op-1", json={"is_active": False})
    mine = client.get("/users/me/platforms")

    assert [item["id"] for item in listing.json()] == ["op-1"]
    assert empty.status_code == 422
    assert updated.status_code == 200
    assert updated.json()["is_active"] is False
    service.update_user.assert_awaited_once_with("op-1", actor_id="admin", role=None, is_active=False)
    assert [item["name"] for item in mine.json()] == ["ADAtickets"]
    service.list_preferred_platforms.assert_awaited_once_with("user")


@pytest.mark.parametrize(
    ("error", "expected_status"),
    [
        (UserNotFoundError("User ghost not found"), 404),
        (PermissionDeniedError("Only admins can change users"), 403),
    ],
)
def test_update_user_maps_errors(ticket_client, error, expected_status):
    client, service = ticket_client
    service.update_user = AsyncMock(side_effect=error)

    response = client.patch("/users/ghost", json={"role": "admin"})

    assert response.status_code == expected_status


def test_ticket_routes_reject_anonymous_callers():
    app = create_app()
    app.dependency_overrides[ticket_deps.get_ticket_service] = lambda: AsyncMock()
    client = TestClient(app)

    assert client.get("/tickets").status_code == 403
    assert client.get("/tickets", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_ping_and_metrics_are_public():
    client = TestClient(create_app())

    assert client.get("/ping").json() == {"status": "ok"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "ticket_transitions_total" in metrics.text
