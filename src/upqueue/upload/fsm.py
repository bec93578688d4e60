"""Upload request lifecycle finite state machine.

Each event applied to a record gets a fresh FSM instance positioned at the
record's current status.  Used to validate transition legality before
:func:`upqueue.upload.state.apply_event` builds the next record.

The FSM is purely a validation tool -- it does NOT mutate records and has
no on_enter_state callbacks.
"""

from __future__ import annotations

from statemachine import State, StateMachine


class UploadLifecycleSM(StateMachine):
    """Four-state lifecycle of one upload request.

    States:
        queued    -- Submitted, waiting for a free slot.
        active    -- Transport call(s) in flight.
        completed -- Every transport call succeeded (terminal).
        errored   -- At least one transport call failed (terminal).
    """

    queued = State("queued", initial=True, value="queued")
    active = State("active", value="active")
    completed = State("completed", final=True, value="completed")
    errored = State("errored", final=True, value="errored")

    start = queued.to(active)
    progress = active.to.itself()
    complete = active.to(completed)
    fail = active.to(errored)


def create_fsm(current_state: str) -> UploadLifecycleSM:
    """Create an FSM instance at the given state.

    Args:
        current_state: One of 'queued', 'active', 'completed', 'errored'.

    Returns:
        An UploadLifecycleSM positioned at *current_state*.
    """
    return UploadLifecycleSM(start_value=current_state)
