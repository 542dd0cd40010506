"""Walk a parent page and a payment frame through one popup checkout.

No SDK or network involved: prints the parent's state after each relayed
message so origin checks and mode handling can be eyeballed.
"""

import argparse

from paybridge.common.config import settings
from paybridge.common.logging import configure_logging
from paybridge.common.metrics import metrics_payload
from paybridge.common.startup import log_startup_config, validate_relay_origins
from paybridge.relay.bridge import ChildFrameBridge, ParentFrameBridge
from paybridge.relay.channel import FrameWindow
from paybridge.relay.messages import FrameEvent


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate parent/child frame messaging.")
    parser.add_argument("--parent-url", default=f"{settings.parent_origin}/")
    parser.add_argument("--child-url", default=f"{settings.child_origin}/paypal-iframe/")
    parser.add_argument("--mode", default="popup", choices=["popup", "modal", "redirect"])
    parser.add_argument("--outcome", default="approved", choices=["approved", "canceled", "error"])
    parser.add_argument("--metrics", action="store_true", help="Print relay counters in Prometheus text format")
    args = parser.parse_args()
    configure_logging()
    validate_relay_origins()
    log_startup_config(settings.service_name, ["parent_origin", "child_origin"])

    parent_window = FrameWindow(args.parent_url)
    child_url = f"{args.child_url}?origin={parent_window.origin}"
    child_window = FrameWindow(child_url, parent=parent_window)

    parent = ParentFrameBridge(parent_window, child_window, expected_origin=child_window.origin)
    child = ChildFrameBridge(child_window)
    parent.setup()
    child.setup()

    def show(step: str) -> None:
        print(
            f"{step:<24} mode={parent.presentation_mode} overlay_open={parent.overlay.is_open} "
            f"full_window={parent.frame.is_full_window}"
        )

    child.select_presentation_mode(args.mode)
    show("mode selected")
    child.notify_flow_start({"presentationMode": args.mode})
    show("flow started")
    if args.outcome == "approved":
        child.notify_approved({"id": "DEMO-ORDER", "status": "COMPLETED"})
    elif args.outcome == "canceled":
        child.notify_canceled("DEMO-ORDER")
    else:
        child.notify_error("DEMO-ORDER")
    show(f"flow {args.outcome}")

    intruder = FrameWindow("https://attacker.example/")
    parent_window.post_message({"eventName": FrameEvent.PAYMENT_FLOW_START.value}, "*", sender=intruder)
    show("foreign message")

    if args.metrics:
        payload, _ = metrics_payload()
        for line in payload.decode().splitlines():
            if line.startswith("relay_messages_total"):
                print(line)


if __name__ == "__main__":
    main()
