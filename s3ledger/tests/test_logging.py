"""
Unit Tests: Structured Logging

Tests:
    - JSON formatting with context fields
    - Context scoping across nested blocks and tasks
    - Store operations bind operation/bucket/key
"""

import asyncio
import io
import json
import logging

import pytest

from s3ledger.observability.logging import (
    JsonFormatter,
    LogLevel,
    current_log_context,
    log_context,
    setup_logging,
)


def _record(message="hello", **extra):
    record = logging.LogRecord("s3ledger.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_basic_fields(self):
        line = json.loads(JsonFormatter().format(_record()))

        assert line["message"] == "hello"
        assert line["level"] == "INFO"
        assert line["logger"] == "s3ledger.test"
        assert "@timestamp" in line

    def test_context_and_extra_merged(self):
        with log_context(operation="read", key="books.json"):
            line = json.loads(JsonFormatter().format(_record(status=404)))

        assert line["operation"] == "read"
        assert line["key"] == "books.json"
        assert line["status"] == 404


class TestLogContext:
    def test_nested_scopes_restore(self):
        with log_context(bucket="ledgers"):
            with log_context(key="a"):
                assert current_log_context() == {"bucket": "ledgers", "key": "a"}
            assert current_log_context() == {"bucket": "ledgers"}
        assert current_log_context() == {}

    @pytest.mark.asyncio
    async def test_tasks_do_not_share_context(self):
        seen = {}

        async def worker(name):
            with log_context(key=name):
                await asyncio.sleep(0.01)
                seen[name] = current_log_context()["key"]

        await asyncio.gather(worker("a"), worker("b"))

        assert seen == {"a": "a", "b": "b"}


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_output(self):
        stream = io.StringIO()
        setup_logging(LogLevel.DEBUG, json_output=True, stream=stream)

        logging.getLogger("s3ledger.test").info("configured")

        assert json.loads(stream.getvalue().splitlines()[-1])["message"] == "configured"

    def test_level_filtering(self):
        stream = io.StringIO()
        setup_logging(LogLevel.WARNING, json_output=False, stream=stream)

        logging.getLogger("s3ledger.test").info("hidden")
        logging.getLogger("s3ledger.test").warning("shown")

        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()


class TestStoreLogging:
    @pytest.mark.asyncio
    async def test_exhausted_retries_logged_with_context(self, store, transport, caplog):
        transport.fail_next(500, times=10)

        with caplog.at_level(logging.WARNING, logger="s3ledger"):
            await store.read_bytes("books.json")

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings
        assert "Giving up after 5 attempts" in warnings[-1].getMessage()

    @pytest.mark.asyncio
    async def test_credentials_never_logged(self, store, caplog):
        with caplog.at_level(logging.DEBUG, logger="s3ledger"):
            await store.write_bytes("books.json", b"{}")

        assert "wJalrXUtnFEMI" not in caplog.text
        assert "Signature=" not in caplog.text
