import pytest

from workorders.tickets.errors import TicketValidationError
from workorders.tickets.state import TicketStateMachine, TicketStatus


def test_any_status_may_move_to_any_other_status():
    machine = TicketStateMachine()
    for current in TicketStatus:
        for target in TicketStatus:
            assert machine.can_transition(current, target)


def test_closing_statuses_require_a_reason():
    machine = TicketStateMachine()
    assert machine.requires_reason(TicketStatus.CONCLUIDO)
    assert machine.requires_reason(TicketStatus.CANCELADO)
    assert not machine.requires_reason(TicketStatus.EM_ANDAMENTO)

    with pytest.raises(TicketValidationError):
        machine.assert_transition(TicketStatus.EM_ANDAMENTO, TicketStatus.CANCELADO, "   ")
    machine.assert_transition(TicketStatus.EM_ANDAMENTO, TicketStatus.CANCELADO, "Client gave up")
    machine.assert_transition(TicketStatus.PENDENTE, TicketStatus.EM_ANDAMENTO, None)


def test_reason_required_statuses_are_configurable():
    machine = TicketStateMachine(reason_required=["CANCELADO"])
    assert not machine.requires_reason(TicketStatus.CONCLUIDO)
    assert machine.requires_reason(TicketStatus.CANCELADO)


def test_billing_rules():
    machine = TicketStateMachine()
    assert TicketStateMachine.initial_state() is TicketStatus.PENDENTE
    assert machine.can_bill(TicketStatus.CONCLUIDO, faturado=False)
    assert not machine.can_bill(TicketStatus.EM_ANDAMENTO, faturado=False)

    with pytest.raises(TicketValidationError, match="already billed"):
        machine.assert_billable(TicketStatus.CONCLUIDO, faturado=True)
    with pytest.raises(TicketValidationError):
        machine.assert_billable(TicketStatus.PENDENTE, faturado=False)
    with pytest.raises(ValueError):
        machine.assert_editable(faturado=True)
