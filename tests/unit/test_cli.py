"""
Unit tests for the btschema CLI interface.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from btschema.admin.models import MaxAgeGcRule
from btschema.admin_api import TableAdmin
from btschema.cli import main
from btschema.config import BtSchemaConfig
from btschema.exceptions import AdminError
from tests.conftest import RecordingAdminSession


@pytest.fixture
def runner():
    """Click test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("btschema.cli.configure_logging"):
        yield


@pytest.fixture
def admin_sessions(session_factory):
    """Route every TableAdmin built by the CLI through the recording session."""

    def from_config(config):
        return TableAdmin(config.instance, config.admin, session_factory)

    with patch("btschema.cli.TableAdmin") as admin_cls:
        admin_cls.from_config.side_effect = from_config
        yield session_factory


class TestCLIMain:
    """Test main CLI functionality."""

    def test_cli_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "idempotent table and column family management" in result.output

    def test_cli_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestInitCommand:
    """Test init command."""

    def test_init_writes_loadable_config(self, runner, tmp_path):
        output = tmp_path / "btschema.yaml"

        result = runner.invoke(main, ["init", "-o", str(output)])

        assert result.exit_code == 0
        assert output.exists()
        config = BtSchemaConfig.from_yaml(output)
        assert config.get_table("events").column_families == ["raw", "agg"]

    def test_init_keeps_existing_file(self, runner, tmp_path):
        output = tmp_path / "btschema.yaml"
        output.write_text("keep me", encoding="utf-8")

        result = runner.invoke(main, ["init", "-o", str(output)], input="n\n")

        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8") == "keep me"


class TestValidateConfigCommand:
    """Test validate-config command."""

    def test_valid_config(self, runner, temp_config_file):
        result = runner.invoke(main, ["validate-config", "-c", temp_config_file])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "sessions" in result.output

    def test_invalid_config(self, runner, tmp_path):
        path = tmp_path / "dup.yaml"
        path.write_text(
            "instance:\n  project: p\n  instance: i\n"
            "tables:\n  - name: t\n  - name: t\n",
            encoding="utf-8",
        )

        result = runner.invoke(main, ["validate-config", "-c", str(path)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestEnsureCommand:
    """Test ensure command."""

    def test_ensure_creates_schema_and_expiration(self, runner, temp_config_file, admin_sessions):
        result = runner.invoke(main, ["ensure", "-c", temp_config_file])

        assert result.exit_code == 0, result.output
        session = admin_sessions.session
        assert set(session.families("events")) == {"raw", "agg"}
        assert session.families("sessions")["state"] == MaxAgeGcRule(86400)
        assert "created table events" in result.output
        assert admin_sessions.opened == 2

    def test_ensure_skip_expiration(self, runner, temp_config_file, admin_sessions):
        result = runner.invoke(main, ["ensure", "-c", temp_config_file, "--skip-expiration"])

        assert result.exit_code == 0
        assert admin_sessions.session.families("sessions")["state"] is None
        assert admin_sessions.opened == 1

    def test_ensure_failure_exits_non_zero(self, runner, temp_config_file, admin_sessions):
        admin_sessions.session.fail_on("create_table", AdminError("quota exceeded"))

        result = runner.invoke(main, ["ensure", "-c", temp_config_file])

        assert result.exit_code == 1
        assert "ensure_schema failed" in result.output
        assert admin_sessions.opened == 1


class TestPlanCommand:
    """Test plan command."""

    def test_plan_lists_pending_changes(self, runner, temp_config_file, admin_sessions):
        result = runner.invoke(main, ["plan", "-c", temp_config_file])

        assert result.exit_code == 0
        assert "events" in result.output
        assert "create" in result.output
        assert admin_sessions.session.mutating_calls == []

    def test_plan_up_to_date(self, runner, temp_config_file, admin_sessions):
        admin_sessions.session = RecordingAdminSession(
            {"events": {"raw": None, "agg": None}, "sessions": {"state": None}}
        )

        result = runner.invoke(main, ["plan", "-c", temp_config_file])

        assert result.exit_code == 0
        assert "up to date" in result.output


class TestSetExpirationCommand:
    """Test set-expiration command."""

    def test_set_expiration_for_one_table(self, runner, temp_config_file, admin_sessions):
        admin_sessions.session = RecordingAdminSession(
            {"events": {"raw": None, "agg": None}, "sessions": {"state": None}}
        )

        result = runner.invoke(
            main, ["set-expiration", "-c", temp_config_file, "--seconds", "60", "-t", "events"]
        )

        assert result.exit_code == 0
        session = admin_sessions.session
        assert session.families("events") == {"raw": MaxAgeGcRule(60), "agg": MaxAgeGcRule(60)}
        assert session.families("sessions") == {"state": None}

    def test_set_expiration_skips_missing_tables(self, runner, temp_config_file, admin_sessions):
        result = runner.invoke(main, ["set-expiration", "-c", temp_config_file, "--seconds", "60"])

        assert result.exit_code == 0
        assert "skipped missing table events" in result.output
        assert admin_sessions.session.mutating_calls == []

    def test_set_expiration_unknown_table(self, runner, temp_config_file, admin_sessions):
        result = runner.invoke(
            main, ["set-expiration", "-c", temp_config_file, "--seconds", "60", "-t", "nope"]
        )

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestDropPrefixCommand:
    """Test drop-prefix command."""

    def test_drop_prefix_with_yes(self, runner, temp_config_file, admin_sessions):
        result = runner.invoke(
            main, ["drop-prefix", "-c", temp_config_file, "-t", "events", "-p", "user#", "--yes"]
        )

        assert result.exit_code == 0
        assert admin_sessions.session.dropped == [("events", b"user#")]

    def test_drop_prefix_confirmed(self, runner, temp_config_file, admin_sessions):
        result = runner.invoke(
            main,
            ["drop-prefix", "-c", temp_config_file, "-t", "events", "-p", "café-"],
            input="y\n",
        )

        assert result.exit_code == 0
        assert admin_sessions.session.dropped == [("events", "café-".encode("utf-8"))]

    def test_drop_prefix_declined(self, runner, temp_config_file, admin_sessions):
        result = runner.invoke(
            main,
            ["drop-prefix", "-c", temp_config_file, "-t", "events", "-p", "user#"],
            input="n\n",
        )

        assert result.exit_code == 0
        assert "Aborted" in result.output
        assert admin_sessions.session.calls == []

    def test_drop_prefix_failure(self, runner, temp_config_file, admin_sessions):
        admin_sessions.session.fail_on("drop_row_range", AdminError("deadline exceeded"))

        result = runner.invoke(
            main, ["drop-prefix", "-c", temp_config_file, "-t", "events", "-p", "user#", "--yes"]
        )

        assert result.exit_code == 1
        assert "before retrying" in result.output
        assert len(admin_sessions.session.calls_to("drop_row_range")) == 1

    def test_drop_prefix_empty_prefix(self, runner, temp_config_file, admin_sessions):
        result = runner.invoke(
            main, ["drop-prefix", "-c", temp_config_file, "-t", "events", "-p", "", "--yes"]
        )

        assert result.exit_code == 1
        assert "must not be empty" in result.output
        assert admin_sessions.opened == 0
