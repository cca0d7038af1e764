"""
Unit Tests: Command Line

Tests:
    - Argument parsing
    - Configuration failures exit before any request
    - Commands against the in-memory store
"""

import json
import logging

import pytest

from s3ledger.__main__ import EXIT_CONFIG, EXIT_FAILED, EXIT_OK, _run, build_parser, main


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParser:
    def test_put(self):
        args = build_parser().parse_args(["put", "books.json", "-", "--content-type", "application/json"])

        assert args.command == "put"
        assert args.source == "-"
        assert args.content_type == "application/json"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    def test_missing_configuration(self, monkeypatch, capsys):
        monkeypatch.delenv("S3LEDGER_BUCKET", raising=False)
        monkeypatch.delenv("S3LEDGER_ENDPOINT", raising=False)

        assert main(["ls"]) == EXIT_CONFIG
        assert "Configuration error" in capsys.readouterr().err


class TestCommands:
    @pytest.mark.asyncio
    async def test_put_get_ls_rm(self, store, tmp_path, capsys):
        source = tmp_path / "books.json"
        source.write_bytes(b'{"head": 1}')
        target = tmp_path / "out.json"
        parser = build_parser()

        assert await _run(parser.parse_args(["put", "books.json", str(source)]), store) == EXIT_OK
        assert await _run(parser.parse_args(["get", "books.json", "-o", str(target)]), store) == EXIT_OK
        assert await _run(parser.parse_args(["ls"]), store) == EXIT_OK
        assert await _run(parser.parse_args(["rm", "books.json"]), store) == EXIT_OK

        out = capsys.readouterr().out.splitlines()
        assert out == ["fluree:s3://books.json", "books.json"]
        assert target.read_bytes() == b'{"head": 1}'

    @pytest.mark.asyncio
    async def test_store_then_cat(self, store, tmp_path, capsys):
        source = tmp_path / "commit.json"
        source.write_text('{"t": 1}')
        parser = build_parser()

        assert await _run(parser.parse_args(["store", "books/commit", str(source)]), store) == EXIT_OK
        address = capsys.readouterr().out.strip()
        assert await _run(parser.parse_args(["cat", address]), store) == EXIT_OK

        assert json.loads(capsys.readouterr().out) == {"t": 1}

    @pytest.mark.asyncio
    async def test_failure_exit_code(self, store, capsys):
        result = await _run(build_parser().parse_args(["get", "missing.json"]), store)

        assert result == EXIT_FAILED
        assert "not found" in capsys.readouterr().err

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", ["put", "store"])
    async def test_missing_source_file(self, store, transport, tmp_path, capsys, command):
        missing = str(tmp_path / "absent.json")
        args = build_parser().parse_args([command, "books/commit", missing])

        assert await _run(args, store) == EXIT_FAILED
        assert "absent.json" in capsys.readouterr().err
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_unwritable_output(self, store, tmp_path, capsys):
        await store.write_bytes("books.json", b"{}")
        target = str(tmp_path / "no-such-dir" / "out.json")

        result = await _run(build_parser().parse_args(["get", "books.json", "-o", target]), store)

        assert result == EXIT_FAILED
        assert "no-such-dir" in capsys.readouterr().err
