"""Tests for CLI entry point."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner
from fakes import FakeRemoteClient

from credsetup import __main__ as cli_module
from credsetup.__main__ import cli
from credsetup.exceptions import RemoteError
from credsetup.models import Provider


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "credsetup.toml"
    path.write_text(
        '[dashboard]\n'
        'base_url = "https://dashboard.test/api"\n'
        'access_key = "test-key"\n'
        '[setup]\n'
        'provider_wait_seconds = 0.1\n'
    )
    return path


@pytest.fixture
def install_client(monkeypatch):
    """Route the CLI to a fake Dashboard client."""

    def install(client: FakeRemoteClient) -> FakeRemoteClient:
        monkeypatch.setattr(cli_module, "_build_client", lambda config: client)
        return client

    return install


class TestCLI:
    """Test CLI commands."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "credsetup" in result.output
        for command in ("setup", "check", "providers"):
            assert command in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_setup_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["setup", "--help"])
        assert result.exit_code == 0
        assert "--org" in result.output
        assert "--yes" in result.output

    def test_invalid_config(self, tmp_path: Path):
        bad = tmp_path / "bad.toml"
        bad.write_text("[dashboard\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(bad), "providers", "--org", "acme"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestProvidersCommand:
    def test_lists_providers(self, config_file, install_client):
        client = install_client(FakeRemoteClient(providers=[
            Provider(uid="p1", alias="prod", is_default=True),
            Provider(uid="p2", alias="dev"),
        ]))
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(config_file), "providers", "--org", "acme"],
        )

        assert result.exit_code == 0
        assert "Providers in acme" in result.output
        assert "prod" in result.output
        assert "p2" in result.output
        assert client.closed

    def test_no_providers(self, config_file, install_client):
        install_client(FakeRemoteClient())
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(config_file), "providers", "--org", "acme"],
        )

        assert result.exit_code == 0
        assert "No providers registered for acme." in result.output

    def test_remote_failure_reports_code(self, config_file, install_client):
        install_client(FakeRemoteClient(org_error=RemoteError("HTTP 404: Not Found")))
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(config_file), "providers", "--org", "acme"],
        )

        assert result.exit_code == 1
        assert "Error [CANNOT_GET_ORGANIZATION_DETAILS]" in result.output
        assert "HTTP 404: Not Found" in result.output


class TestCheckCommand:
    def test_needed(self, config_file, install_client, no_local_aws):
        install_client(FakeRemoteClient())
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(config_file), "check", "--org", "acme"],
        )

        assert result.exit_code == 0
        assert "Credential setup needed." in result.output

    def test_default_provider_means_done(self, config_file, install_client, no_local_aws):
        install_client(FakeRemoteClient(providers=[
            Provider(uid="p1", alias="prod", is_default=True),
        ]))
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(config_file), "check", "--org", "acme"],
        )

        assert result.exit_code == 0
        assert "Credentials already set up." in result.output


class TestSetupCommand:
    def _invoke(self, config_file: Path, *args: str, input: str | None = None):
        runner = CliRunner()
        return runner.invoke(
            cli,
            ["--config", str(config_file), "setup", "--org", "acme",
             "--app", "shop", "--service", "orders", *args],
            input=input,
        )

    def test_already_set_up(self, config_file, install_client, no_local_aws):
        client = install_client(FakeRemoteClient(providers=[
            Provider(uid="p1", alias="prod", is_default=True),
        ]))

        result = self._invoke(config_file)

        assert result.exit_code == 0
        assert "already set up" in result.output
        assert client.link_requests == []

    def test_declined_shows_docs(self, config_file, install_client, no_local_aws):
        client = install_client(FakeRemoteClient())

        result = self._invoke(config_file, input="n\n")

        assert result.exit_code == 0
        assert "You can setup your AWS account later" in result.output
        assert client.calls["get_providers"] == 1

    def test_links_chosen_provider(self, config_file, install_client, no_local_aws):
        client = install_client(FakeRemoteClient(providers=[
            Provider(uid="p1", alias="prod"),
        ]))

        result = self._invoke(config_file, "--yes", input="1\n")

        assert result.exit_code == 0, result.output
        assert "prod(p1)" in result.output
        assert client.link_requests == [
            ("org-uid-1", "service", "appName|shop|serviceName|orders", "p1"),
        ]
        assert client.closed

    def test_skip(self, config_file, install_client, no_local_aws):
        install_client(FakeRemoteClient())

        result = self._invoke(config_file, "--yes", input="3\n")

        assert result.exit_code == 0, result.output
        assert "http://slss.io/aws-creds-setup" in result.output

    def test_link_failure_reports_code(self, config_file, install_client, no_local_aws):
        install_client(FakeRemoteClient(
            providers=[Provider(uid="p1", alias="prod")],
            link_error=RemoteError("HTTP 403: denied"),
        ))

        result = self._invoke(config_file, "--yes", input="1\n")

        assert result.exit_code == 1
        assert "Error [CANNOT_LINK_EXISTING_PROVIDER]" in result.output

    def test_link_without_service_fails(self, config_file, install_client, no_local_aws):
        client = install_client(FakeRemoteClient(providers=[Provider(uid="p1", alias="prod")]))

        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["--config", str(config_file), "setup", "--org", "acme", "--yes"],
            input="1\n",
        )

        assert result.exit_code == 1
        assert "Error [CANNOT_LINK_EXISTING_PROVIDER]" in result.output
        assert client.link_requests == []
