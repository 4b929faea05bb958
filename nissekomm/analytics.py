"""Analytics module for sending game events to Datadog.

Fail-open: metric failures are logged but never block the game. The engine
queues events through EventTracker so the POST runs off the caller's thread.
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait

import requests

logger = logging.getLogger(__name__)

DATADOG_API_URL = "https://api.datadoghq.com/api/v1/series"

METRIC_NAME = "nissekomm.event"

EVENTS = (
    "code_success",
    "code_failure",
    "badge_earned",
    "symbol_collected",
    "decryption_completed",
)


def build_tags(event_name: str, data: dict | None = None) -> list[str]:
    """Turn an event and its data into Datadog tags, e.g. ["event:code_success", "day:8"]."""
    tags = [f"event:{event_name}"]
    for key, value in sorted((data or {}).items()):
        tags.append(f"{key}:{value}")
    return tags


def track_event(event_name: str, data: dict | None, datadog_api_key: str | None) -> bool:
    """Send a game event to Datadog as a COUNT metric.

    Args:
        event_name: One of EVENTS
        data: Extra event fields, sent as tags
        datadog_api_key: Datadog API key; when empty nothing is sent

    Returns:
        True if the metric was sent successfully, False otherwise

    Example:
        >>> track_event("code_success", {"day": 8}, "your-api-key")
        True
    """
    if not datadog_api_key:
        return False

    try:
        timestamp = int(time.time())

        payload = {
            "series": [{
                "metric": METRIC_NAME,
                "type": "count",
                "points": [[timestamp, 1]],
                "tags": build_tags(event_name, data)
            }]
        }

        headers = {
            "Content-Type": "application/json",
            "DD-API-KEY": datadog_api_key
        }

        response = requests.post(
            DATADOG_API_URL,
            json=payload,
            headers=headers,
            timeout=5
        )

        response.raise_for_status()
        logger.info(f"Sent analytics event: {event_name}")
        return True

    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to send Datadog event {event_name}: {e}")
        return False
    except Exception as e:
        logger.error(f"Unexpected error sending Datadog event {event_name}: {e}")
        return False


class EventTracker:
    """Sends events to Datadog on a background worker.

    track() returns immediately; the POST happens on a single worker thread
    so a slow or failing Datadog never holds up the game. Without an API key
    nothing is queued and no thread is started.

    Args:
        datadog_api_key: Datadog API key, or None to disable tracking
    """

    def __init__(self, datadog_api_key: str | None):
        self.datadog_api_key = datadog_api_key
        self._executor = None
        self._pending: list[Future] = []
        if datadog_api_key:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="nissekomm-analytics")

    def track(self, event_name: str, data: dict | None = None) -> None:
        if self._executor is None:
            return
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(self._executor.submit(track_event, event_name, data, self.datadog_api_key))

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for queued events. Returns True if all were sent or dropped in time."""
        _, not_done = wait(list(self._pending), timeout=timeout)
        self._pending = [f for f in self._pending if not f.done()]
        return not not_done

    def close(self) -> None:
        if self._executor is None:
            return
        self.flush()
        self._executor.shutdown(wait=True)
        self._executor = None
