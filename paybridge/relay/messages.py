"""Frame message vocabulary exchanged between merchant page and payment frame."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class FrameEvent(str, Enum):
    PRESENTATION_MODE_CHANGED = "presentationMode-changed"
    PAYMENT_FLOW_START = "payment-flow-start"
    PAYMENT_FLOW_APPROVED = "payment-flow-approved"
    PAYMENT_FLOW_CANCELED = "payment-flow-canceled"
    PAYMENT_FLOW_ERROR = "payment-flow-error"
    CLOSE_PAYMENT_WINDOW = "close-payment-window"


FLOW_END_EVENTS = frozenset(
    {
        FrameEvent.PAYMENT_FLOW_APPROVED,
        FrameEvent.PAYMENT_FLOW_CANCELED,
        FrameEvent.PAYMENT_FLOW_ERROR,
    }
)


class FrameMessage(BaseModel):
    """`{eventName, data}` envelope carried by every frame message."""

    model_config = ConfigDict(populate_by_name=True)

    event_name: FrameEvent = Field(alias="eventName")
    data: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"eventName": self.event_name.value}
        if self.data is not None:
            payload["data"] = self.data
        return payload


def parse_frame_message(payload: Any) -> FrameMessage | None:
    """Return the envelope, or None for payloads outside the vocabulary."""

    if not isinstance(payload, dict):
        return None
    try:
        return FrameMessage.model_validate(payload)
    except ValidationError:
        return None
