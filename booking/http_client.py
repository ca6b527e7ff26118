"""HTTP session for outbound notification providers.

Pattern: requests.Session with urllib3 status retries, tenacity retries
for connection-level errors, and connection pooling.
"""
import logging

import requests
from requests.adapters import HTTPAdapter
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


def create_http_session(max_retries: int = 2, backoff_factor: float = 0.5) -> requests.Session:
    """
    Session whose adapter retries 429/5xx responses on POST.

    Args:
        max_retries: Status-level retry attempts
        backoff_factor: urllib3 backoff multiplier
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["POST"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=4,
        pool_maxsize=4,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def post_json(
    session: requests.Session,
    url: str,
    payload: dict,
    headers: dict = None,
    timeout: float = 10,
    attempts: int = 3,
) -> requests.Response:
    """
    POST a JSON payload, retrying connection errors and timeouts.

    Raises:
        requests.exceptions.RequestException: When all attempts fail or the
            final response is an HTTP error
    """

    @retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    def _post():
        response = session.post(url, json=payload, headers=headers or {}, timeout=timeout)
        response.raise_for_status()
        return response

    return _post()
