"""
Canonical workflow types (``assignx_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines, so that Guard, Transition
and Workflow are defined once and the project lifecycle table is plain data.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* At most one transition per (from_state, action) pair, so dispatch is a
  table lookup, never an if/else chain.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the state machine does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``moves_money=True`` marks transitions whose side effects write ledger
    entries.  ``automatic=True`` marks follow-on transitions applied inside
    the same unit of work as the triggering event.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_money: bool = False
    automatic: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for an entity lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action!r} "
                    f"{t.from_state!r}->{t.to_state!r} references an unknown state"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate transition for {key!r}"
                )
            seen.add(key)

    def find(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for (from_state, action), or None."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, from_state: str) -> frozenset[str]:
        """Externally triggerable actions accepted in ``from_state``."""
        return frozenset(
            t.action
            for t in self.transitions
            if t.from_state == from_state and not t.automatic
        )
