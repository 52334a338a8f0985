"""Tests for the command line interface."""

import pytest
from typer.testing import CliRunner

from kyoboscout import cli
from kyoboscout.errors import NetworkError, ValidationError
from kyoboscout.models import Book, SearchParseMetrics, SearchResult

runner = CliRunner()


def make_result(query="흰"):
    books = [Book.create(id="1234567890", title="흰", authors=["한강"], publisher="문학동네")]
    return SearchResult(
        books=books,
        total_found=1,
        search_time=0.1,
        query=query,
        has_more=False,
        metrics=SearchParseMetrics(total_items=1, successful_items=1),
    )


@pytest.fixture
def fake_search(monkeypatch):
    calls = []

    async def run_search(query, settings):
        calls.append((query, settings))
        return make_result(query)

    monkeypatch.setattr(cli, "run_search", run_search)
    return calls


class TestSearchCommand:
    """Tests for the search command."""

    def test_table_output(self, fake_search):
        result = runner.invoke(cli.app, ["search", "흰"])
        assert result.exit_code == 0
        assert "문학동네" in result.output

    def test_json_output(self, fake_search):
        result = runner.invoke(cli.app, ["search", "흰", "--format", "json"])
        assert result.exit_code == 0
        assert '"total_found": 1' in result.output
        assert '"한강"' in result.output

    def test_csv_output(self, fake_search):
        result = runner.invoke(cli.app, ["search", "흰", "-f", "csv"])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == ",".join(cli.CSV_FIELDS)
        assert lines[1].startswith('"1234567890","흰","한강"')

    def test_options_reach_settings(self, fake_search):
        """Should pass --max and --details into the settings."""
        runner.invoke(cli.app, ["search", "흰", "-n", "5", "--details"])
        _, settings = fake_search[0]
        assert settings.max_results == 5
        assert settings.enable_detail_fetch is True

    def test_error_shows_user_message(self, monkeypatch):
        """Should print the Korean message and exit with status 1."""

        async def run_search(query, settings):
            raise ValidationError("검색어는 2글자 이상이어야 합니다", field="query", value=query)

        monkeypatch.setattr(cli, "run_search", run_search)
        result = runner.invoke(cli.app, ["search", "a"])
        assert result.exit_code == 1
        assert "2글자 이상" in result.output

    def test_invalid_environment(self, fake_search, monkeypatch):
        """Should refuse to run with invalid settings."""
        monkeypatch.setenv("KYOBOSCOUT_RETRIES", "0")
        result = runner.invoke(cli.app, ["search", "흰"])
        assert result.exit_code == 1
        assert fake_search == []


class TestDetailCommand:
    """Tests for the detail command."""

    def test_network_error(self, monkeypatch):
        async def run_detail(book_id, settings, embed_cover):
            raise NetworkError("HTTP 404: Page not found", status_code=404)

        monkeypatch.setattr(cli, "run_detail", run_detail)
        result = runner.invoke(cli.app, ["detail", "S1234567890"])
        assert result.exit_code == 1
        assert "찾을 수 없습니다" in result.output
