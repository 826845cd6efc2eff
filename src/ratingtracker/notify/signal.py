"""Message delivery through a Signal REST gateway."""

import requests
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ratingtracker.config import Secrets
from ratingtracker.logging_config import get_alert_logger
from ratingtracker.notify.base import Notifier

logger = structlog.get_logger(__name__)
alert_logger = get_alert_logger()


class SignalNotifier(Notifier):
    """Sends messages via the `/v2/send` endpoint of a signal-cli REST API.

    Sending is disabled when no gateway URL or sender number is configured,
    which is the normal state in development.
    """

    def __init__(self, secrets: Secrets, timeout: int = 30):
        self._url = secrets.signal_url.rstrip("/")
        self._sender = secrets.signal_sender
        self._timeout = timeout
        self._session = requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self._url and self._sender)

    def send(self, message: str, recipients: list[str]) -> None:
        # Preserve order while removing duplicate numbers
        numbers = list(dict.fromkeys(recipients))
        alert_logger.info("message.outbound", message=message, recipients=len(numbers))

        if not self.enabled:
            logger.debug("signal.disabled")
            return
        if not numbers:
            logger.debug("signal.no_recipients")
            return

        try:
            response = self._post(
                {"message": message, "number": self._sender, "recipients": numbers}
            )
            response.raise_for_status()
            logger.debug("signal.sent", recipients=len(numbers))
        except requests.exceptions.RequestException as e:
            logger.error("signal.send_failed", error=str(e), recipients=len(numbers))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (requests.exceptions.Timeout, requests.exceptions.ConnectionError)
        ),
        reraise=True,
    )
    def _post(self, payload: dict) -> requests.Response:
        return self._session.post(f"{self._url}/v2/send", json=payload, timeout=self._timeout)
