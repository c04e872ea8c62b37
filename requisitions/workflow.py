"""
Status machines for requests and procurements.

Each machine is a flat table of ``(current_state, action, role) -> next_state``
built from the rule lists below. Every endpoint that changes a status goes
through ``transition()``; nothing else assigns ``status`` on these records.
"""

from accounts.models import User
from inventory.exceptions import InvalidTransition, RoleNotAllowed

from .models import Procurement, Request

NEW = 'NEW'

# Actions
SUBMIT = 'submit'
REVISE = 'revise'
APPROVE_UNIT = 'approve_unit'
APPROVE_FACULTY = 'approve_faculty'
APPROVE = 'approve'
PROCESS = 'process'
MARK_READY = 'mark_ready'
COMPLETE = 'complete'
RECEIVE = 'receive'
REJECT = 'reject'
CANCEL = 'cancel'


class StateMachine:
    def __init__(self, name, rules, terminal_states):
        self.name = name
        self.terminal_states = frozenset(terminal_states)
        self._table = {}
        for sources, action, target, roles in rules:
            for source in sources:
                for role in roles:
                    key = (source, action, role)
                    if key in self._table:
                        raise ValueError(f'Duplicate {name} transition rule: {key}')
                    self._table[key] = target

    def next_state(self, current_state, action, role):
        """
        Resolve the state reached by ``role`` performing ``action``.

        Raises ``InvalidTransition`` when the action is not defined for the
        current state and ``RoleNotAllowed`` when it is defined but not for
        this role.
        """
        target = self._table.get((current_state, action, role))
        if target is not None:
            return target

        if any(key[0] == current_state and key[1] == action for key in self._table):
            raise RoleNotAllowed(
                f'Your role cannot perform "{action}" on a {self.name} in status {current_state}.'
            )
        raise InvalidTransition(
            f'Cannot {action.replace("_", " ")} a {self.name} in status {current_state}.',
            {'status': current_state, 'action': action},
        )

    def allowed_actions(self, current_state, role):
        return sorted({
            action for (state, action, rule_role) in self._table
            if state == current_state and rule_role == role
        })

    def is_terminal(self, state):
        return state in self.terminal_states


REQUEST_RULES = [
    # (from states, action, to, roles)
    ((NEW,), SUBMIT, Request.STATUS_PENDING_UNIT, (User.ROLE_UNIT_STAFF,)),
    ((NEW,), SUBMIT, Request.STATUS_PENDING_FACULTY, (User.ROLE_UNIT_ADMIN,)),
    ((Request.STATUS_PENDING_UNIT,), REVISE, Request.STATUS_PENDING_UNIT,
     (User.ROLE_UNIT_STAFF, User.ROLE_UNIT_ADMIN)),
    ((Request.STATUS_PENDING_UNIT,), APPROVE_UNIT, Request.STATUS_PENDING_FACULTY, (User.ROLE_UNIT_ADMIN,)),
    ((Request.STATUS_PENDING_FACULTY,), APPROVE_FACULTY, Request.STATUS_APPROVED, (User.ROLE_FACULTY_ADMIN,)),
    ((Request.STATUS_APPROVED,), PROCESS, Request.STATUS_PROCESSING, (User.ROLE_WAREHOUSE_STAFF,)),
    ((Request.STATUS_PROCESSING,), MARK_READY, Request.STATUS_READY_TO_PICKUP, (User.ROLE_WAREHOUSE_STAFF,)),
    ((Request.STATUS_READY_TO_PICKUP,), COMPLETE, Request.STATUS_COMPLETED, (User.ROLE_WAREHOUSE_STAFF,)),
    ((Request.STATUS_PENDING_UNIT,), REJECT, Request.STATUS_REJECTED, (User.ROLE_UNIT_ADMIN,)),
    ((Request.STATUS_PENDING_FACULTY,), REJECT, Request.STATUS_REJECTED, (User.ROLE_FACULTY_ADMIN,)),
    ((Request.STATUS_APPROVED, Request.STATUS_PROCESSING, Request.STATUS_READY_TO_PICKUP), REJECT,
     Request.STATUS_REJECTED, (User.ROLE_WAREHOUSE_STAFF,)),
    ((Request.STATUS_PENDING_UNIT, Request.STATUS_PENDING_FACULTY), CANCEL, Request.STATUS_CANCELED,
     (User.ROLE_UNIT_STAFF, User.ROLE_UNIT_ADMIN)),
]

PROCUREMENT_RULES = [
    ((NEW,), SUBMIT, Procurement.STATUS_PENDING, (User.ROLE_WAREHOUSE_STAFF,)),
    ((Procurement.STATUS_PENDING,), REVISE, Procurement.STATUS_PENDING, (User.ROLE_WAREHOUSE_STAFF,)),
    ((Procurement.STATUS_PENDING,), APPROVE, Procurement.STATUS_APPROVED,
     (User.ROLE_FACULTY_ADMIN, User.ROLE_SUPER_ADMIN)),
    ((Procurement.STATUS_PENDING, Procurement.STATUS_APPROVED), REJECT, Procurement.STATUS_REJECTED,
     (User.ROLE_FACULTY_ADMIN, User.ROLE_SUPER_ADMIN)),
    ((Procurement.STATUS_APPROVED,), RECEIVE, Procurement.STATUS_COMPLETED, (User.ROLE_WAREHOUSE_STAFF,)),
]

REQUEST_MACHINE = StateMachine(
    'request',
    REQUEST_RULES,
    terminal_states=[Request.STATUS_COMPLETED, Request.STATUS_REJECTED, Request.STATUS_CANCELED],
)
PROCUREMENT_MACHINE = StateMachine(
    'procurement',
    PROCUREMENT_RULES,
    terminal_states=[Procurement.STATUS_COMPLETED, Procurement.STATUS_REJECTED],
)


def transition(machine, current_state, action, role):
    """Single entry point for every status change."""
    return machine.next_state(current_state, action, role)
