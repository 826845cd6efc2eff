"""HTTP helpers for extractors.

Errors surface as ExtractionError carrying the response body, so that the
orchestrator can keep the raw payload of every failed extraction.
"""

import requests
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ratingtracker.fetch.base import ExtractionError, RawSnapshot

logger = structlog.get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0 Safari/537.36"
)
DEFAULT_TIMEOUT = 60

_session = requests.Session()
_session.headers.update({"User-Agent": USER_AGENT})


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=20),
    retry=retry_if_exception_type(
        (requests.exceptions.Timeout, requests.exceptions.ConnectionError)
    ),
    reraise=True,
)
def _get(url: str, **kwargs) -> requests.Response:
    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
    logger.debug("http.get", url=url)
    return _session.get(url, **kwargs)


def _request(url: str, content_type: str, **kwargs) -> requests.Response:
    try:
        response = _get(url, **kwargs)
    except requests.exceptions.RequestException as e:
        raise ExtractionError(f"Request to {url} failed: {e}") from e

    if not response.ok:
        raise ExtractionError(
            f"Request to {url} failed with status {response.status_code}",
            [RawSnapshot(response.text, content_type)],
        )
    return response


def get_text(url: str, **kwargs) -> str:
    """GET a URL and return the body as text.

    Raises:
        ExtractionError: If the request fails or returns a non-2xx status.
    """
    return _request(url, "text/html", **kwargs).text


def get_json(url: str, **kwargs) -> dict:
    """GET a URL and return the body as a JSON object.

    Raises:
        ExtractionError: If the request fails, returns a non-2xx status, or
                         the body is not a JSON object.
    """
    response = _request(url, "application/json", **kwargs)
    try:
        data = response.json()
    except ValueError as e:
        raise ExtractionError(
            f"Response from {url} is not valid JSON", [RawSnapshot(response.text, "text/html")]
        ) from e
    if not isinstance(data, dict):
        raise ExtractionError(
            f"Response from {url} is not a JSON object", [RawSnapshot(response.text, "application/json")]
        )
    return data
