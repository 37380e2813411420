"""Status workflow rules for record lifecycles.

A workflow is a closed status enum, an initial state and a transition
policy. Policies are plain predicates ``allowed(current, target) -> bool``
so a permissive tracker and a restrictive one share the same engine.
"""

from collections.abc import Callable
from enum import Enum

from record_tracker.records.errors import InvalidTransitionError
from record_tracker.records.models import (
    ApplicationStatus,
    JobApplication,
    Record,
    Ticket,
    TicketStatus,
    parse_enum,
)

TransitionPolicy = Callable[[Enum, Enum], bool]


def permissive(current: Enum, target: Enum) -> bool:
    """Allow every transition."""
    return True


def requires_prior(target: Enum, prior: Enum) -> TransitionPolicy:
    """Build a policy where ``target`` is reachable only from ``prior``.

    Every other transition is allowed.
    """

    def policy(current: Enum, new: Enum) -> bool:
        if new == target:
            return current == prior
        return True

    return policy


def all_of(*policies: TransitionPolicy) -> TransitionPolicy:
    """Combine policies; a transition must satisfy each of them."""

    def policy(current: Enum, new: Enum) -> bool:
        return all(rule(current, new) for rule in policies)

    return policy


class WorkflowEngine:
    """Validate status changes against a transition policy."""

    def __init__(
        self,
        status_type: type[Enum],
        initial: Enum,
        policy: TransitionPolicy = permissive,
    ):
        if not isinstance(initial, status_type):
            raise ValueError(
                f"Initial state {initial!r} is not a {status_type.__name__}"
            )
        self.status_type = status_type
        self.initial = initial
        self.policy = policy

    def allowed(self, current: Enum, target: Enum) -> bool:
        """Return whether moving from ``current`` to ``target`` is legal."""
        return self.policy(current, target)

    def check(self, current: Enum, target: Enum, record_id: int | None = None) -> None:
        """Raise if the transition is illegal.

        Raises:
            InvalidTransitionError: If the policy rejects the transition.
        """
        if not self.allowed(current, target):
            raise InvalidTransitionError(record_id, current, target)

    def parse_status(self, value: str | Enum) -> Enum:
        """Resolve a status name case-insensitively.

        Raises:
            ValueError: If the name is not a member of the status enum.
        """
        return parse_enum(self.status_type, value, "status")


JOB_WORKFLOW = WorkflowEngine(ApplicationStatus, ApplicationStatus.APPLIED)

# CLOSED can only be reached from RESOLVED.
TICKET_WORKFLOW = WorkflowEngine(
    TicketStatus,
    TicketStatus.NEW,
    requires_prior(TicketStatus.CLOSED, TicketStatus.RESOLVED),
)

_DEFAULT_WORKFLOWS: dict[type[Record], WorkflowEngine] = {
    JobApplication: JOB_WORKFLOW,
    Ticket: TICKET_WORKFLOW,
}


def default_workflow(record_type: type[Record]) -> WorkflowEngine:
    """Return the stock workflow for a record kind."""
    return _DEFAULT_WORKFLOWS[record_type]
