"""Enrollment state machine.

Defines the valid status transitions for a signing request as it moves
through the CA protocol.  All transitions are enforced via
:func:`assert_transition`.

::

    built -> submitted -> pending -> retrieved
      \\          \\          \\
       +----------+----------+--> failed

``retrieved`` and ``failed`` are terminal.

Usage::

    from certenroll.core.state import ENROLLMENT_TRANSITIONS, assert_transition
    from certenroll.core.types import EnrollmentState

    assert_transition(
        EnrollmentState.BUILT, EnrollmentState.SUBMITTED,
        ENROLLMENT_TRANSITIONS,
    )
"""

from __future__ import annotations

import logging

from certenroll.core.types import EnrollmentState

log = logging.getLogger(__name__)

ENROLLMENT_TRANSITIONS: dict[EnrollmentState, frozenset[EnrollmentState]] = {
    EnrollmentState.BUILT: frozenset(
        {EnrollmentState.SUBMITTED, EnrollmentState.FAILED},
    ),
    EnrollmentState.SUBMITTED: frozenset(
        {EnrollmentState.PENDING, EnrollmentState.FAILED},
    ),
    EnrollmentState.PENDING: frozenset(
        {EnrollmentState.RETRIEVED, EnrollmentState.FAILED},
    ),
    EnrollmentState.RETRIEVED: frozenset(),
    EnrollmentState.FAILED: frozenset(),
}


def assert_transition(
    current: EnrollmentState,
    target: EnrollmentState,
    table: dict = ENROLLMENT_TRANSITIONS,
) -> None:
    """Raise :class:`ValueError` if *current* -> *target* is not allowed.

    Parameters
    ----------
    current:
        The current state of the request.
    target:
        The desired new state.
    table:
        Transition table, :data:`ENROLLMENT_TRANSITIONS` by default.

    """
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown state {current!r}"
        raise ValueError(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(msg)


def log_transition(
    resource_id,
    from_state,
    to_state,
    *,
    reason: str | None = None,
) -> None:
    """Emit a structured log entry for a state transition.

    Parameters
    ----------
    resource_id:
        Common name or pickup ID identifying the request.
    from_state:
        The previous state.
    to_state:
        The new state.
    reason:
        Optional human-readable reason for the transition.

    """
    extra = {
        "event": "state_transition",
        "resource_type": "signing_request",
        "resource_id": str(resource_id),
        "from_status": from_state.value if hasattr(from_state, "value") else str(from_state),
        "to_status": to_state.value if hasattr(to_state, "value") else str(to_state),
    }
    if reason:
        extra["reason"] = reason
    log.info(
        "signing request %s: %s -> %s%s",
        resource_id,
        extra["from_status"],
        extra["to_status"],
        f" ({reason})" if reason else "",
        extra=extra,
    )
