import logging
from collections import deque
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

MAX_ALERTS = 20


class AlertBoard:
    """User-visible notices. Only playback-device failures are raised here."""

    def __init__(self, max_alerts: int = MAX_ALERTS):
        self._alerts: deque[dict] = deque(maxlen=max_alerts)

    def send_alert(self, message: str, track_id: str | None = None) -> None:
        alert = {
            "message": message,
            "track_id": track_id,
            "raised_at": datetime.now(timezone.utc).isoformat(),
        }
        self._alerts.append(alert)
        logger.warning(f"Alert raised: {message} (track={track_id})")

    def pending(self) -> list[dict]:
        return list(self._alerts)

    def dismiss(self) -> int:
        count = len(self._alerts)
        self._alerts.clear()
        return count
