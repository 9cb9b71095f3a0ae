"""
Invoicing Workflows.

State machine for the invoice lifecycle, and the single helper every
service uses to check a status change against it.  Soft deletion keeps the
status and is modelled as a self-transition.
"""

from dataclasses import dataclass

from billing_kernel.exceptions import InvalidTransitionError
from billing_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    writes_ledger: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]

    def find(self, from_state: str, action: str) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == from_state and transition.action == action:
                return transition
        return None

    def actions_from(self, from_state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == from_state)


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

TOTAL_POSITIVE = Guard(
    name="total_positive",
    description="Invoice total is greater than zero",
)

BALANCE_ZERO = Guard(
    name="balance_zero",
    description="Invoice balance is zero",
)

NOTHING_PAID = Guard(
    name="nothing_paid",
    description="No payment has been applied to the invoice",
)

PAST_DUE = Guard(
    name="past_due",
    description="Due date is before the as-of time",
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Customer invoice lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "pending",
        "overdue",
        "paid",
        "cancelled",
        "refunded",
    ),
    transitions=(
        Transition("draft", "pending", action="approve", guard=TOTAL_POSITIVE, writes_ledger=True),
        Transition("draft", "cancelled", action="cancel", guard=NOTHING_PAID),
        Transition("draft", "draft", action="delete"),
        Transition("pending", "overdue", action="mark_overdue", guard=PAST_DUE),
        Transition("pending", "paid", action="apply_payment", guard=BALANCE_ZERO, writes_ledger=True),
        Transition("pending", "pending", action="apply_partial_payment", writes_ledger=True),
        Transition("pending", "cancelled", action="cancel", guard=NOTHING_PAID),
        Transition("overdue", "paid", action="apply_payment", guard=BALANCE_ZERO, writes_ledger=True),
        Transition("overdue", "overdue", action="apply_partial_payment", writes_ledger=True),
        Transition("overdue", "cancelled", action="cancel", guard=NOTHING_PAID),
        Transition("cancelled", "cancelled", action="delete"),
    ),
)

logger.info(
    "invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
        "initial_state": INVOICE_WORKFLOW.initial_state,
    },
)


def assert_transition(invoice_id, from_state: str, action: str) -> Transition:
    """
    Return the transition for ``action`` out of ``from_state``.

    Raises:
        InvalidTransitionError: If the workflow has no such transition.
    """
    transition = INVOICE_WORKFLOW.find(from_state, action)
    if transition is None:
        raise InvalidTransitionError(str(invoice_id), from_state, action)
    return transition
