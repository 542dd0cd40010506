"""Payment session lifecycle transitions enforced by session wrappers."""

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "IDLE": {"ACTIVE", "DESTROYED"},
    "ACTIVE": {"APPROVED", "CANCELED", "FAILED", "DESTROYED"},
    "APPROVED": {"ACTIVE", "DESTROYED"},
    "CANCELED": {"ACTIVE", "DESTROYED"},
    "FAILED": {"ACTIVE", "DESTROYED"},
    "DESTROYED": set(),
}


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")
