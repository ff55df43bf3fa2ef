"""CLI tests for the `jute` command."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from jute.cli import main
from jute.remote import JupyterClient


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def sample_path(tmp_path, sample_json):
    path = tmp_path / "example.ipynb"
    path.write_text(sample_json, encoding="utf-8")
    return path


@pytest.fixture
def fake_client(server):
    """Route every JupyterClient the CLI builds to the in-memory server."""
    def factory(url, token):
        return JupyterClient(url, token, transport=server.transport())

    with patch("jute.cli.JupyterClient", side_effect=factory):
        yield server


# ---------------------------------------------------------------------------
# Notebook commands
# ---------------------------------------------------------------------------

class TestNotebookCommands:

    def test_info(self, runner, sample_path):
        result = runner.invoke(main, ["info", str(sample_path)])
        assert result.exit_code == 0
        assert "Example Notebook" in result.output
        assert "Python 3" in result.output
        assert "Alice, Bob" in result.output
        assert "nbformat 4.4" in result.output
        assert "Hello" in result.output

    def test_info_shows_bracketed_text_verbatim(self, runner, tmp_path):
        path = tmp_path / "brackets.ipynb"
        path.write_text(json.dumps({
            "metadata": {
                "title": "[bold]T[/bold]",
                "kernelspec": {"name": "py[3]", "display_name": "[/a]"},
            },
            "nbformat": 4, "nbformat_minor": 5,
            "cells": [
                {"cell_type": "code", "metadata": {}, "source": "x = d[key]",
                 "execution_count": None, "outputs": []},
                {"cell_type": "markdown", "metadata": {}, "source": "[/a]"},
            ],
        }), encoding="utf-8")

        result = runner.invoke(main, ["info", str(path)])
        assert result.exit_code == 0
        assert "[bold]T[/bold]" in result.output
        assert "py[3]" in result.output
        assert "x = d[key]" in result.output
        assert result.output.count("[/a]") == 2

    def test_info_requires_existing_file(self, runner):
        result = runner.invoke(main, ["info", "/nonexistent/path.ipynb"])
        assert result.exit_code != 0

    def test_check_ok(self, runner, sample_path):
        result = runner.invoke(main, ["check", str(sample_path)])
        assert result.exit_code == 0
        assert "ok" in result.output

    def test_check_reports_bad_tag(self, runner, tmp_path):
        path = tmp_path / "bad.ipynb"
        path.write_text(json.dumps({
            "metadata": {}, "nbformat": 4, "nbformat_minor": 5,
            "cells": [{"cell_type": "widget", "metadata": {}, "source": ""}],
        }), encoding="utf-8")

        result = runner.invoke(main, ["check", str(path)])
        assert result.exit_code == 1
        assert "Error" in result.output
        assert "cells.0" in result.output

    def test_normalize_in_place(self, runner, sample_path):
        result = runner.invoke(main, ["normalize", str(sample_path)])
        assert result.exit_code == 0

        saved = json.loads(sample_path.read_text(encoding="utf-8"))
        assert saved["cells"][0]["source"] == ["print('Hello, world!')"]
        assert saved["metadata"]["custom"] == "metadata"

    def test_normalize_to_other_file(self, runner, sample_path, tmp_path, sample_json):
        out = tmp_path / "out" / "normalized.ipynb"
        result = runner.invoke(main, ["normalize", str(sample_path), "-o", str(out)])
        assert result.exit_code == 0
        assert out.exists()
        assert sample_path.read_text(encoding="utf-8") == sample_json


# ---------------------------------------------------------------------------
# Server commands
# ---------------------------------------------------------------------------

class TestServerCommands:

    def test_version(self, runner, fake_client):
        result = runner.invoke(main, ["server", "version", "--token", "secret"])
        assert result.exit_code == 0
        assert "2.14.0" in result.output

    def test_token_from_environment(self, runner, fake_client):
        result = runner.invoke(main, ["server", "version"], env={"JUPYTER_TOKEN": "secret"})
        assert result.exit_code == 0
        assert fake_client.requests[0].headers["Authorization"] == "token secret"

    def test_url_from_environment(self, runner, fake_client):
        result = runner.invoke(
            main, ["server", "version", "--token", "secret"],
            env={"JUPYTER_SERVER_URL": "https://jupyter.example.com"},
        )
        assert result.exit_code == 0
        assert str(fake_client.requests[0].url) == "https://jupyter.example.com/api"

    def test_remote_error_exit_code(self, runner, fake_client):
        result = runner.invoke(main, ["server", "version", "--token", "wrong"])
        assert result.exit_code == 1
        assert "403" in result.output

    def test_invalid_url(self, runner, fake_client):
        result = runner.invoke(main, ["server", "version", "--url", "nowhere"])
        assert result.exit_code == 1
        assert "invalid server URL" in result.output


class TestKernelCommands:

    def test_list_empty(self, runner, fake_client):
        result = runner.invoke(main, ["kernels", "list", "--token", "secret"])
        assert result.exit_code == 0
        assert "No running kernels" in result.output

    def test_list(self, runner, fake_client):
        fake_client.add_kernel("k1")
        result = runner.invoke(main, ["kernels", "list", "--token", "secret"])
        assert result.exit_code == 0
        assert "k1" in result.output
        assert "idle" in result.output

    def test_show_missing(self, runner, fake_client):
        result = runner.invoke(main, ["kernels", "show", "nope", "--token", "secret"])
        assert result.exit_code == 1
        assert "no kernel" in result.output

    def test_show_missing_echoes_bracketed_id(self, runner, fake_client):
        result = runner.invoke(main, ["kernels", "show", "[/x]", "--token", "secret"])
        assert result.exit_code == 1
        assert "no kernel with ID [/x]" in result.output

    def test_start(self, runner, fake_client):
        websocket = AsyncMock()
        with patch("jute.connection.connect", AsyncMock(return_value=websocket)) as mock_connect:
            result = runner.invoke(main, ["kernels", "start", "python3", "--token", "secret"])

        assert result.exit_code == 0
        assert "abc" in result.output
        assert mock_connect.await_args.args[0] == "ws://localhost:8888/api/kernels/abc/channels"
        websocket.close.assert_awaited_once()
        assert "abc" in fake_client.kernels

    def test_stop(self, runner, fake_client):
        fake_client.add_kernel("abc")
        result = runner.invoke(main, ["kernels", "stop", "abc", "--token", "secret"])
        assert result.exit_code == 0
        assert fake_client.kernels == {}
