"""Unit tests for payment session lifecycle guardrails."""

import pytest

from paybridge.common.state_machine import validate_transition


def test_valid_transition():
    """Sanity check: starting an idle session is legal."""

    validate_transition("IDLE", "ACTIVE")


def test_restart_after_terminal_outcome():
    """A failed or canceled session may be started again."""

    validate_transition("FAILED", "ACTIVE")
    validate_transition("CANCELED", "ACTIVE")


def test_invalid_transition():
    """An outcome cannot be recorded for a session that never started."""

    with pytest.raises(ValueError):
        validate_transition("IDLE", "APPROVED")


def test_destroyed_is_final():
    with pytest.raises(ValueError):
        validate_transition("DESTROYED", "ACTIVE")


def test_unknown_state_rejects_everything():
    with pytest.raises(ValueError):
        validate_transition("SETTLED", "ACTIVE")
