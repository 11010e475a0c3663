"""
Tests for the HTTP console wrapper around the CLI.
"""
import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

import console_app
from config import settings

TOKEN = {"X-Console-Token": "s3cret"}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "console_token", "s3cret")
    return TestClient(console_app.app)


@pytest.fixture
def cli_calls(monkeypatch):
    """Replace the subprocess runner; records the argument lists it was given."""
    calls = []

    async def fake_stream(args):
        calls.append(args)
        yield "<h1>Get meeting reports</h1>\n<pre>"
        yield "Processed 1/1 meetings\n"
        yield "</pre>\n<p>Exit status: 0</p>\n"

    monkeypatch.setattr(console_app, "stream_cli_output", fake_stream)
    return calls


@pytest.mark.unit
class TestAccess:

    def test_console_disabled_without_token(self, monkeypatch, cli_calls):
        monkeypatch.setattr(settings, "console_token", None)
        response = TestClient(console_app.app).get("/console/meeting-report?courseid=5", headers=TOKEN)

        assert response.status_code == 503
        assert cli_calls == []

    def test_wrong_token_forbidden(self, client, cli_calls):
        response = client.get("/console/meeting-report?courseid=5", headers={"X-Console-Token": "nope"})

        assert response.status_code == 403
        assert cli_calls == []

    def test_missing_token_forbidden(self, client, cli_calls):
        response = client.get("/console/meeting-report?courseid=5")

        assert response.status_code == 403


@pytest.mark.unit
class TestMeetingReport:

    def test_default_range_is_last_three_days(self, client, cli_calls):
        response = client.get("/console/meeting-report?courseid=5", headers=TOKEN)

        today = date.today()
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "<pre>" in response.text
        assert "Processed 1/1 meetings" in response.text
        assert cli_calls == [[
            "--courseid=5",
            f"--start={(today - timedelta(days=3)).isoformat()}",
            f"--end={today.isoformat()}",
        ]]

    def test_explicit_range(self, client, cli_calls):
        response = client.get(
            "/console/meeting-report?courseid=5&start=2020-01-01&end=2020-01-31", headers=TOKEN
        )

        assert response.status_code == 200
        assert cli_calls == [["--courseid=5", "--start=2020-01-01", "--end=2020-01-31"]]

    def test_start_after_end_rejected(self, client, cli_calls):
        response = client.get(
            "/console/meeting-report?courseid=5&start=2020-02-01&end=2020-01-01", headers=TOKEN
        )

        assert response.status_code == 400
        assert cli_calls == []

    @pytest.mark.parametrize("query", ["", "?courseid=0", "?courseid=abc"])
    def test_course_id_required(self, client, cli_calls, query):
        response = client.get(f"/console/meeting-report{query}", headers=TOKEN)

        assert response.status_code == 422
        assert cli_calls == []


@pytest.mark.unit
class TestStreamCliOutput:

    async def test_output_is_escaped_inside_pre(self):
        stdout = MagicMock()
        stdout.readline = AsyncMock(side_effect=[b"No meeting details found.\n", b"<b>&</b>\n", b""])
        process = MagicMock(stdout=stdout)
        process.wait = AsyncMock(return_value=1)

        with patch.object(asyncio, "create_subprocess_exec", new=AsyncMock(return_value=process)) as spawn:
            chunks = [chunk async for chunk in console_app.stream_cli_output(["--courseid=5"])]

        assert spawn.await_args.args[1] == str(console_app.CLI_SCRIPT)
        assert spawn.await_args.args[2] == "--courseid=5"
        body = "".join(chunks)
        assert body.startswith("<h1>Get meeting reports</h1>\n<pre>")
        assert "No meeting details found.\n" in body
        assert "&lt;b&gt;&amp;&lt;/b&gt;" in body
        assert body.endswith("</pre>\n<p>Exit status: 1</p>\n")


@pytest.mark.unit
class TestServiceEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_metrics(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "zoom_requests_total" in response.text
