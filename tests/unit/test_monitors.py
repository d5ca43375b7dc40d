"""
Unit tests for AccessLogMonitor.
"""

import json
import logging

import pytest

from conftest import login_page, make_request
from interceptor.http import ResponseRecorder
from interceptor.intercept import AccessLogMonitor, BufferedResponse, InterceptPipeline, RequestLog


ACCESS_LOGGER = "interceptor.access"


class TestAccessLogMonitor:
    """Tests for access log entries built from captured chunks."""

    def test_text_entry(self, caplog):
        pipeline = InterceptPipeline(login_page, monitors=[AccessLogMonitor()])

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            pipeline.handle(ResponseRecorder(), make_request("/login"))

        assert len(caplog.records) == 1
        record = caplog.records[0]
        assert record.name == ACCESS_LOGGER
        assert '"GET /login" 200 11 2 cookie=yes' in record.getMessage()
        assert record.getMessage().startswith("127.0.0.1 - - [")

    def test_json_entry(self, caplog):
        monitor = AccessLogMonitor(log_format="json")
        pipeline = InterceptPipeline(lambda w, r: w.write(b"x" * 42), monitors=[monitor])

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            pipeline.handle(ResponseRecorder(), make_request("/data?page=2"))

        entry = json.loads(caplog.records[0].getMessage())
        assert entry["path"] == "/data"
        assert entry["query"] == "page=2"
        assert entry["content_length"] == 42
        assert entry["chunks"] == 1
        assert entry["set_cookie"] is False
        assert entry["user_agent"] == "pytest"

    def test_status_comes_from_real_sink(self):
        recorder = ResponseRecorder()
        capture = BufferedResponse(recorder)
        capture.set_status(201)

        entry = AccessLogMonitor().build_entry(capture, make_request(), (b"ab",))

        assert entry.status_code == 201
        assert entry.content_length == 2

    def test_skip_paths(self, caplog):
        monitor = AccessLogMonitor(skip_paths=["/health"])

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            monitor(BufferedResponse(ResponseRecorder()), make_request("/health"), ())

        assert caplog.records == []

    def test_level_respected(self, caplog):
        monitor = AccessLogMonitor(log_level=logging.DEBUG)

        with caplog.at_level(logging.INFO, logger=ACCESS_LOGGER):
            monitor(BufferedResponse(ResponseRecorder()), make_request(), (b"x",))

        assert caplog.records == []

    def test_custom_logger(self, caplog):
        custom = logging.getLogger("tests.access")
        monitor = AccessLogMonitor(access_logger=custom)

        with caplog.at_level(logging.INFO, logger="tests.access"):
            monitor(BufferedResponse(ResponseRecorder()), make_request(), ())

        assert caplog.records[0].name == "tests.access"

    def test_invalid_format(self):
        with pytest.raises(ValueError):
            AccessLogMonitor(log_format="xml")

    def test_does_not_change_the_response(self):
        recorder = ResponseRecorder()
        pipeline = InterceptPipeline(login_page, monitors=[AccessLogMonitor()])

        pipeline.handle(recorder, make_request("/login"))

        assert recorder.text == "hello buddy"


class TestRequestLog:

    def test_to_text_without_client(self):
        entry = RequestLog(
            method="GET", path="/", query="", client_ip="", user_agent="-",
            status_code=200, content_length=0, chunks=0, set_cookie=False,
            timestamp="19/Oct/2026:10:00:00 +0000",
        )

        assert entry.to_text() == '- - - [19/Oct/2026:10:00:00 +0000] "GET /" 200 0 0 cookie=no'
        assert entry.to_dict()["status_code"] == 200
