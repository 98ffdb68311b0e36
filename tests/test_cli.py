"""
Tests for the lifecycle CLI.
"""

import pytest
import yaml
from click.testing import CliRunner

from domain_lifecycle.exceptions import InvalidQueryError
from domain_lifecycle.models import BatchReport
from domain_lifecycle.queries import ExpiringDomainsQuery, PurgeableDomainsQuery
from lifecycle_cli.main import _sweep_expire, _sweep_purge, cli
from lifecycle_cli.output import format_output


def page(names):
    return {"data": [{"ro_id": str(i), "name": n} for i, n in enumerate(names)], "meta": {}}


@pytest.fixture
def runner(monkeypatch):
    for name in ("API_HOST", "API_PORT", "API_TOKEN", "LIFECYCLE_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


class TestConfigCommands:
    """Tests for config init/show."""

    def test_init(self, runner, tmp_path):
        """init writes a loadable sample."""
        path = tmp_path / "config.yaml"
        result = runner.invoke(cli, ["config", "init", "--path", str(path)])
        assert result.exit_code == 0
        assert "Created config file" in result.output
        assert "lifecycle" in yaml.safe_load(path.read_text())

    def test_show_masks_token(self, runner, tmp_path):
        """show prints the effective config without secrets."""
        path = tmp_path / "config.yaml"
        path.write_text("api:\n  host: admin.test\n  token: hunter2\n")
        result = runner.invoke(cli, ["--config", str(path), "--format", "json", "config", "show"])
        assert result.exit_code == 0
        assert "admin.test" in result.output
        assert "hunter2" not in result.output
        assert "***" in result.output


class TestRunCommand:
    """Tests for argument checks of ad-hoc runs."""

    def test_bad_concurrency(self, runner):
        """Concurrency below 1 is refused before connecting."""
        result = runner.invoke(cli, ["run", "expiry", "--concurrency", "0"])
        assert result.exit_code == 1
        assert "--concurrency must be at least 1" in result.output

    def test_bad_before(self, runner):
        """An invalid cut-off is refused before connecting."""
        result = runner.invoke(cli, ["run", "purge", "--before", "soon"])
        assert result.exit_code == 1
        assert isinstance(result.exception, InvalidQueryError)

    def test_unknown_workflow(self, runner):
        """Only known workflows can be started."""
        result = runner.invoke(cli, ["run", "nightly"])
        assert result.exit_code == 2


class TestSweeps:
    """Tests for the direct Admin API sweeps."""

    @pytest.mark.asyncio
    async def test_sweep_expire(self, admin_api, capsys):
        """Auto-renew, mark refusals for deletion and carry on after errors."""
        api = admin_api({
            "GET /domains/expiring": page(["a.ae", "b.ae", "c.ae"]),
            "POST /domains/a.ae/autorenew": None,
            "POST /domains/b.ae/autorenew": (400, {"code": "AUTO_RENEW_NOT_ENABLED"}),
            "DELETE /domains/b.ae/markdelete": None,
            "POST /domains/c.ae/autorenew": (500, {"error": "db down"}),
        })
        async with api.client() as client:
            report = await _sweep_expire(client, ExpiringDomainsQuery())

        assert report.succeeded == ["a.ae", "b.ae"]
        assert report.failed[0].name == "c.ae"
        assert report.failed[0].step == "AutoRenewDomain"
        assert "c.ae" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_sweep_expire_refusal_message(self, admin_api):
        """A refusal known only by its message still marks for deletion."""
        api = admin_api({
            "GET /domains/expiring": page(["a.ae"]),
            "POST /domains/a.ae/autorenew": (
                400, {"error": "Auto renew is not enabled for registrar1"}
            ),
            "DELETE /domains/a.ae/markdelete": None,
        })
        async with api.client() as client:
            report = await _sweep_expire(client, ExpiringDomainsQuery())

        assert report.succeeded == ["a.ae"]
        assert report.failed == []
        assert [r.url.path for r in api.requests] == [
            "/domains/expiring", "/domains/a.ae/autorenew", "/domains/a.ae/markdelete",
        ]

    @pytest.mark.asyncio
    async def test_sweep_purge(self, admin_api):
        """Purge each domain and record failures."""
        api = admin_api({
            "GET /domains/purgeable": page(["a.ae", "b.ae"]),
            "DELETE /domains/a.ae": (409, {"error": "has children"}),
            "DELETE /domains/b.ae": None,
        })
        async with api.client() as client:
            report = await _sweep_purge(client, PurgeableDomainsQuery())

        assert report.succeeded == ["b.ae"]
        assert report.failed[0].error_type == "BusinessRuleError"


class TestOutput:
    """Tests for output formatting."""

    def test_list_table(self):
        """Lists of dicts render as tables."""
        text = format_output([{"schedule_id": "expiry_schedule_abc", "outcome": "created"}])
        lines = text.splitlines()
        assert lines[0].split() == ["Schedule", "Id", "Outcome"]
        assert "expiry_schedule_abc" in lines[2]

    def test_json(self):
        """JSON output serializes dataclasses."""
        text = format_output(BatchReport(total=1, succeeded=["a.ae"]), "json")
        assert '"succeeded": [' in text
