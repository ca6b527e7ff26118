"""Tests for structured logging and request IDs."""
import re

from booking.logging_config import (
    RequestIDMiddleware,
    generate_request_id,
    get_logger,
    setup_structured_logging,
)


class TestStructuredLogging:

    def test_logger_methods_work(self):
        """Should log structured events with keyword context."""
        setup_structured_logging(log_level="DEBUG")
        logger = get_logger(__name__)

        logger.info("appointment_created", appointment_id="apt-1")
        logger.warning("storage_reset", key="services")

    def test_generate_request_id_format(self):
        """Should generate request IDs with correct format."""
        request_id = generate_request_id()

        assert re.fullmatch(r"req-[0-9a-f]{12}", request_id)
        assert generate_request_id() != request_id


class TestRequestIDMiddleware:

    def _run(self, environ):
        captured = {}

        def app(environ, start_response):
            captured["environ_id"] = environ["REQUEST_ID"]
            start_response("200 OK", [("Content-Type", "text/plain")])
            return [b"ok"]

        def start_response(status, headers, exc_info=None):
            captured["headers"] = dict(headers)

        body = RequestIDMiddleware(app)(environ, start_response)
        return body, captured

    def test_generates_id_and_sets_header(self):
        """Should tag the request and response with a new id."""
        body, captured = self._run({})

        assert body == [b"ok"]
        assert captured["headers"]["X-Request-ID"] == captured["environ_id"]
        assert captured["environ_id"].startswith("req-")

    def test_reuses_incoming_id(self):
        """Should reuse an incoming request id."""
        _, captured = self._run({"HTTP_X_REQUEST_ID": "req-upstream"})

        assert captured["headers"]["X-Request-ID"] == "req-upstream"
