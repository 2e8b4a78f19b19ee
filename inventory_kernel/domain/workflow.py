"""
Document workflow (``inventory_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the document state machine, and the single
``DOCUMENT_WORKFLOW`` every document kind follows.  The lifecycle is data:
adding a state or action means adding a Transition, not another branch in
a service.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.  ``moves_stock=True`` marks the transition that
    mutates stock and appends to the movement ledger.
    """
    from_state: str
    to_state: str
    action: str
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                f"is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action!r} references "
                    f"an undeclared state ({t.from_state} -> {t.to_state})"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    f"has outgoing transition {t.action!r}"
                )

    def find_transition(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` from ``from_state``, or None."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def allowed_actions(self, from_state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == from_state)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------

ACTION_UPDATE = "update"
ACTION_MARK_READY = "mark_ready"
ACTION_VALIDATE = "validate"
ACTION_CANCEL = "cancel"


# -----------------------------------------------------------------------------
# Document Workflow
# -----------------------------------------------------------------------------

DOCUMENT_WORKFLOW = Workflow(
    name="stock_document",
    description="Receipt / delivery / transfer / adjustment lifecycle",
    initial_state="draft",
    states=("draft", "ready", "done", "cancelled"),
    transitions=(
        Transition("draft", "draft", action=ACTION_UPDATE),
        Transition("draft", "ready", action=ACTION_MARK_READY),
        Transition("draft", "done", action=ACTION_VALIDATE, moves_stock=True),
        Transition("ready", "done", action=ACTION_VALIDATE, moves_stock=True),
        Transition("draft", "cancelled", action=ACTION_CANCEL),
        Transition("ready", "cancelled", action=ACTION_CANCEL),
    ),
    terminal_states=("done", "cancelled"),
)
