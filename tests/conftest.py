from __future__ import annotations

from datetime import datetime, timezone

import pytest

from adatickets.lifecycle import Actor, OperatorPool, Role, TicketSnapshot, TicketStatus


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def creator() -> Actor:
    return Actor("u-creator", Role.USER)


@pytest.fixture
def operator() -> Actor:
    return Actor("op-1", Role.OPERATOR)


@pytest.fixture
def admin() -> Actor:
    return Actor("admin-1", Role.ADMIN)


@pytest.fixture
def pool() -> OperatorPool:
    return OperatorPool(candidates=("op-1",), active_operators=frozenset({"op-1", "op-2", "admin-1"}))


@pytest.fixture
def unassigned_ticket() -> TicketSnapshot:
    return TicketSnapshot(
        id="ticket-1",
        status=TicketStatus.UNASSIGNED,
        platform_id="platform-1",
        creator_user_id="u-creator",
    )


@pytest.fixture
def make_ticket():
    def factory(status: TicketStatus, operator_user_id: str | None = "op-1") -> TicketSnapshot:
        return TicketSnapshot(
            id="ticket-1",
            status=status,
            platform_id="platform-1",
            creator_user_id="u-creator",
            operator_user_id=operator_user_id,
        )

    return factory
