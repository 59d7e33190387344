"""Process-local record of alerts already handed to the email queue."""


class SentAlertTracker:
    """Set of alert ids that have been enqueued for email.

    Starts empty and only grows (``release`` exists to undo a claim whose
    enqueue failed). ``claim`` does the membership test and the insert
    without awaiting in between, so two dispatches running on the same
    event loop cannot both claim one id.
    """

    def __init__(self) -> None:
        self._sent: set[str] = set()

    def claim(self, alert_id: str) -> bool:
        """Mark an id as notified. Returns False if it already was."""
        if alert_id in self._sent:
            return False
        self._sent.add(alert_id)
        return True

    def release(self, alert_id: str) -> None:
        self._sent.discard(alert_id)

    def contains(self, alert_id: str) -> bool:
        return alert_id in self._sent

    def __contains__(self, alert_id: object) -> bool:
        return alert_id in self._sent

    def __len__(self) -> int:
        return len(self._sent)
