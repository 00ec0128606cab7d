"""Unit tests for the sitesnap CLI - no network access.

requests.Session.get is patched with a small in-memory site.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests
from click.testing import CliRunner

from sitesnap.cli.main import cli
from sitesnap.snapshot.store import EXPORT_HEADER

BASE = "https://example.com"

SITE = {
    f"{BASE}/sitemap.xml": (
        b'<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        b"<url><loc>https://example.com/</loc></url>"
        b"<url><loc>https://example.com/blog/launch</loc></url>"
        b"</urlset>"
    ),
    f"{BASE}/": b"<html><head><title>Home</title></head><body><h1>Welcome</h1></body></html>",
    f"{BASE}/blog/launch": (
        b"<html><head><title>Launch</title></head>"
        b'<body><h1>Launch</h1><span data-hook="like-count">14</span></body></html>'
    ),
}


def fake_get(url, **kwargs):
    response = MagicMock(spec=requests.Response)
    body = SITE.get(url)
    response.status_code = 200 if body is not None else 404
    response.content = body or b""
    response.text = (body or b"").decode("utf-8")
    return response


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Temporary database path; retries never sleep."""
    monkeypatch.setenv("SITESNAP_BACKOFF_BASE", "0")
    return str(tmp_path / "cli.db")


def invoke(runner, db, *args, **kwargs):
    return runner.invoke(cli, ["--db", db, *args], **kwargs)


class TestCommandStructure:
    """Test command registration and help text."""

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("add", "list", "ingest", "show", "export", "classify", "reset"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "sitesnap" in result.output

    def test_workers_range_enforced(self, runner, db):
        result = invoke(runner, db, "ingest", "acme", "--workers", "9")
        assert result.exit_code == 2


class TestPropertyCommands:
    """Test add / list / reset."""

    def test_add_and_list(self, runner, db):
        result = invoke(runner, db, "add", "acme", "www.example.com")
        assert result.exit_code == 0
        assert "Tracking acme at https://example.com" in result.output

        result = invoke(runner, db, "list", "--json")
        assert result.exit_code == 0
        entries = json.loads(result.output)
        assert [entry["name"] for entry in entries] == ["acme"]
        assert entries[0]["last_updated"] is None

    def test_list_empty(self, runner, db):
        result = invoke(runner, db, "list")
        assert result.exit_code == 0
        assert "No properties tracked yet" in result.output

    def test_add_conflicting_base(self, runner, db):
        invoke(runner, db, "add", "acme", BASE)
        result = invoke(runner, db, "add", "acme", "https://other.com")
        assert result.exit_code == 1
        assert "already tracks" in result.output

    def test_add_malformed_url(self, runner, db):
        result = invoke(runner, db, "add", "acme", "not a url")
        assert result.exit_code == 1
        assert "Malformed URL" in result.output

    def test_reset(self, runner, db):
        invoke(runner, db, "add", "acme", BASE)
        result = invoke(runner, db, "reset", "acme", "--yes")
        assert result.exit_code == 0
        assert "Removed acme" in result.output

        result = invoke(runner, db, "reset", "acme", "--yes")
        assert result.exit_code == 1


class TestClassifyCommand:
    def test_classify(self, runner):
        result = runner.invoke(cli, ["classify", "https://example.com/blog/my-post"])
        assert result.exit_code == 0
        assert result.output.strip() == "4"

    def test_classify_with_source(self, runner):
        result = runner.invoke(cli, ["classify", "https://example.com/x/y", "--source", "portfolio-sitemap.xml"])
        assert result.output.strip() == "8"

    def test_classify_malformed(self, runner):
        result = runner.invoke(cli, ["classify", "not a url"])
        assert result.exit_code == 1


class TestIngestCommand:
    """Test ingest, show and export against a patched HTTP layer."""

    def test_ingest_show_export(self, runner, db):
        with patch("requests.Session.get", side_effect=fake_get):
            result = invoke(runner, db, "ingest", "acme", "--base-url", BASE)

        assert result.exit_code == 0, result.output
        assert "2 merged" in result.output

        result = invoke(runner, db, "show", "acme", "--json")
        assert result.exit_code == 0
        rows = json.loads(result.output)
        by_url = {row["url"]: row for row in rows}
        assert by_url[f"{BASE}/"]["level"] == 1
        assert by_url[f"{BASE}/"]["like_count"] == "N/A"
        assert by_url[f"{BASE}/blog/launch"]["level"] == 4
        assert by_url[f"{BASE}/blog/launch"]["like_count"] == 14
        assert all(row["top_level_count"] == 1 for row in rows)
        assert not any(row["collapsed"] for row in rows)

        result = invoke(runner, db, "export", "acme")
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == ",".join(EXPORT_HEADER)
        assert len(lines) == 3

    def test_export_to_file(self, runner, db, tmp_path):
        with patch("requests.Session.get", side_effect=fake_get):
            invoke(runner, db, "ingest", "acme", "--base-url", BASE)

        target = tmp_path / "acme.csv"
        result = invoke(runner, db, "export", "acme", "-o", str(target), "--latest-only")
        assert result.exit_code == 0
        assert target.read_text(encoding="utf-8").startswith("url,title,description")

    def test_ingest_unknown_property(self, runner, db):
        result = invoke(runner, db, "ingest", "ghost")
        assert result.exit_code == 1
        assert "unknown property" in result.output

    def test_ingest_unreachable_host(self, runner, db):
        refused = requests.exceptions.ConnectionError("refused")
        with patch("requests.Session.get", side_effect=refused):
            result = invoke(runner, db, "ingest", "acme", "--base-url", BASE)

        assert result.exit_code == 1
        assert "Could not discover" in result.output

    def test_show_unknown_property(self, runner, db):
        result = invoke(runner, db, "show", "ghost")
        assert result.exit_code == 1
