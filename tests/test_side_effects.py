from __future__ import annotations

import pytest

from adatickets.lifecycle import (
    Actor,
    OperatorPool,
    Role,
    SideEffectEmitter,
    TicketEvent,
    TicketLifecycle,
    TicketSnapshot,
    TicketStatus,
    TransitionKind,
    TransitionRequest,
)
from adatickets.lifecycle.effects import EDIT_TEMPLATES, NOTIFICATION_TEMPLATES, Audience


@pytest.fixture
def emitter() -> SideEffectEmitter:
    return SideEffectEmitter()


def test_every_kind_has_templates():
    assert set(EDIT_TEMPLATES) == set(TransitionKind)
    assert set(NOTIFICATION_TEMPLATES) == set(TransitionKind)


def test_auto_assign_notifies_operator_and_creator(emitter, unassigned_ticket, creator, now):
    pool = OperatorPool(candidates=("U1",), active_operators=frozenset({"U1"}))
    outcome = TicketLifecycle.propose_transition(
        unassigned_ticket, TransitionRequest(TicketEvent.ASSIGN), creator, pool, now=now
    )

    effects = emitter.emit(outcome, unassigned_ticket, watchers=pool.candidates)

    assert outcome.new_status == TicketStatus.WAITING_OPERATOR
    assert outcome.new_operator == "U1"
    assert effects.edit.old_status == TicketStatus.UNASSIGNED
    assert effects.edit.new_status == TicketStatus.WAITING_OPERATOR
    assert effects.recipients == ("U1", "u-creator")
    assert all(notification.edit_id == effects.edit.id for notification in effects.notifications)
    assert all(notification.created_at == now for notification in effects.notifications)


def test_operator_reply_notifies_creator_only(emitter, make_ticket, operator, pool):
    ticket = make_ticket(TicketStatus.WAITING_OPERATOR)
    outcome = TicketLifecycle.propose_transition(ticket, TransitionRequest(TicketEvent.REPLY), operator, pool)

    effects = emitter.emit(outcome, ticket)

    assert outcome.new_status == TicketStatus.WAITING_USER
    assert effects.edit.user_id == "op-1"
    assert effects.recipients == ("u-creator",)


def test_creator_reply_notifies_operator(emitter, make_ticket, creator, pool):
    ticket = make_ticket(TicketStatus.WAITING_USER)
    outcome = TicketLifecycle.propose_transition(ticket, TransitionRequest(TicketEvent.REPLY), creator, pool)

    effects = emitter.emit(outcome, ticket)

    assert effects.recipients == ("op-1",)


@pytest.mark.parametrize("actor_name", ["operator", "admin"])
def test_close_notifies_creator_and_operator(request, emitter, make_ticket, pool, actor_name):
    ticket = make_ticket(TicketStatus.WAITING_USER)
    actor = request.getfixturevalue(actor_name)
    outcome = TicketLifecycle.propose_transition(ticket, TransitionRequest(TicketEvent.CLOSE), actor, pool)

    effects = emitter.emit(outcome, ticket)

    assert effects.edit.new_status == TicketStatus.CLOSED
    assert sorted(effects.recipients) == ["op-1", "u-creator"]


def test_recipients_are_not_duplicated(emitter, now):
    snapshot = TicketSnapshot(
        id="ticket-2",
        status=TicketStatus.WAITING_USER,
        platform_id="platform-1",
        creator_user_id="op-1",
        operator_user_id="op-1",
    )
    outcome = TicketLifecycle.propose_transition(
        snapshot, TransitionRequest(TicketEvent.CLOSE), Actor("op-1", Role.OPERATOR), OperatorPool(), now=now
    )

    effects = emitter.emit(outcome, snapshot)

    assert effects.recipients == ("op-1",)


def test_creation_notifies_watchers_sorted(emitter, unassigned_ticket, creator):
    outcome = TicketLifecycle.propose_creation(unassigned_ticket, creator)

    effects = emitter.emit(outcome, unassigned_ticket, watchers=["op-3", "op-1"], operators=["op-9"])

    assert effects.edit.description == EDIT_TEMPLATES[TransitionKind.CREATED]
    assert effects.recipients == ("op-1", "op-3")


def test_creation_falls_back_to_all_operators(emitter, unassigned_ticket, creator):
    outcome = TicketLifecycle.propose_creation(unassigned_ticket, creator)

    effects = emitter.emit(outcome, unassigned_ticket, watchers=[], operators=["op-2", "admin-1"])

    assert effects.recipients == ("admin-1", "op-2")


def test_reassign_notifies_previous_and_new_operator(emitter, make_ticket, operator, pool):
    ticket = make_ticket(TicketStatus.WAITING_OPERATOR)
    outcome = TicketLifecycle.propose_transition(
        ticket, TransitionRequest(TicketEvent.REASSIGN, "op-2"), operator, pool
    )

    effects = emitter.emit(outcome, ticket)

    assert effects.recipients == ("op-1", "op-2")
    messages = {notification.user_id: notification.message for notification in effects.notifications}
    assert messages["op-2"] != messages["op-1"]


def test_reopen_with_same_operator_notifies_operator(emitter, make_ticket, creator, pool):
    ticket = make_ticket(TicketStatus.CLOSED)
    outcome = TicketLifecycle.propose_transition(ticket, TransitionRequest(TicketEvent.REPLY), creator, pool)

    effects = emitter.emit(outcome, ticket)

    assert effects.edit.old_status == TicketStatus.CLOSED
    assert effects.edit.new_status == TicketStatus.WAITING_OPERATOR
    assert effects.recipients == ("op-1",)


def test_reopen_with_new_operator_also_notifies_creator(emitter, make_ticket, creator):
    ticket = make_ticket(TicketStatus.CLOSED)
    pool = OperatorPool(candidates=("op-2",), active_operators=frozenset({"op-2"}))
    outcome = TicketLifecycle.propose_transition(ticket, TransitionRequest(TicketEvent.REPLY), creator, pool)

    effects = emitter.emit(outcome, ticket)

    assert effects.recipients == ("op-2", "u-creator")


def test_admin_edit_notifies_creator_and_operator(emitter, make_ticket, admin, pool):
    ticket = make_ticket(TicketStatus.WAITING_OPERATOR)
    outcome = TicketLifecycle.propose_transition(ticket, TransitionRequest(TicketEvent.EDIT), admin, pool)

    effects = emitter.emit(outcome, ticket)

    assert effects.edit.old_status == effects.edit.new_status == TicketStatus.WAITING_OPERATOR
    assert effects.recipients == ("u-creator", "op-1")


def test_creator_edit_on_unassigned_ticket_notifies_watchers(emitter, unassigned_ticket, creator, pool):
    outcome = TicketLifecycle.propose_transition(unassigned_ticket, TransitionRequest(TicketEvent.EDIT), creator, pool)

    effects = emitter.emit(outcome, unassigned_ticket, watchers=["op-1"])

    assert effects.recipients == ("op-1",)
    assert effects.notifications[0].message == NOTIFICATION_TEMPLATES[TransitionKind.EDITED][Audience.WATCHER]


def test_each_emit_produces_single_edit_with_fresh_ids(emitter, make_ticket, operator, pool):
    ticket = make_ticket(TicketStatus.WAITING_OPERATOR)
    outcome = TicketLifecycle.propose_transition(ticket, TransitionRequest(TicketEvent.CLOSE), operator, pool)

    first = emitter.emit(outcome, ticket)
    second = emitter.emit(outcome, ticket)

    assert first.edit.id != second.edit.id
    assert first.edit.old_status == outcome.old_status
    assert first.edit.new_status == outcome.new_status
