"""
Tests for the CLI interface.
"""
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from tone_slyder.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL

runner = CliRunner()

TEXT = "Thanks for the update"


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "usage.db")


@pytest.fixture
def mock_build_provider(make_provider):
    """Replace the real provider with a scripted one."""
    with patch('tone_slyder.cli.main.build_provider') as mock_build:
        mock_build.return_value = make_provider(["Thank you for the update."])
        yield mock_build


class TestRewriteCommand:
    """Test the rewrite command."""

    def test_rewrite_basic(self, db, mock_build_provider):
        """Test a rewrite prints the new text and stats."""
        result = runner.invoke(app, ["rewrite", TEXT, "-d", "formality=80", "--db", db])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Thank you for the update." in result.output
        assert "model=gpt-3.5-turbo" in result.output
        mock_build_provider.assert_called_once_with(0.4, 2000)

    def test_rewrite_with_preset_and_guardrails(self, db, mock_build_provider):
        """Test preset values reach the provider payload."""
        result = runner.invoke(app, [
            "rewrite", TEXT, "--preset", "business", "-d", "conversational=85",
            "--require", "update", "--ban", "synergy", "--db", db
        ])

        assert result.exit_code == EXIT_CODE_PASS
        payload = mock_build_provider.return_value.calls[0][0]
        assert "- formality: very high" in payload
        assert "- conversational: very high" in payload
        assert '- "update"' in payload
        assert '- "synergy"' in payload

    def test_guardrail_violations_shown(self, db, mock_build_provider, make_provider):
        mock_build_provider.return_value = make_provider(["Thanks for the news", "Thanks for the news"])

        result = runner.invoke(app, ["rewrite", TEXT, "-r", "update", "--db", db])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Guardrail:" in result.output
        assert 'Required word/phrase "update" was removed' in result.output

    def test_unknown_preset(self, db, mock_build_provider):
        result = runner.invoke(app, ["rewrite", TEXT, "--preset", "pirate", "--db", db])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unknown preset: pirate" in result.output

    def test_malformed_dial(self, db, mock_build_provider):
        result = runner.invoke(app, ["rewrite", TEXT, "-d", "formality", "--db", db])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid request:" in result.output

    def test_dial_out_of_range(self, db, mock_build_provider):
        result = runner.invoke(app, ["rewrite", TEXT, "-d", "formality=95", "--db", db])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "must be between 10 and 90" in result.output

    def test_model_not_in_tier(self, db, mock_build_provider):
        """Test a tier denial exits with failure and no provider call."""
        result = runner.invoke(app, ["rewrite", TEXT, "-m", "gpt-4", "--db", db])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Not allowed:" in result.output
        assert mock_build_provider.return_value.calls == []

    def test_paid_tier_model(self, db, mock_build_provider):
        result = runner.invoke(app, ["rewrite", TEXT, "-m", "gpt-4", "-t", "premium", "--db", db])

        assert result.exit_code == EXIT_CODE_PASS
        assert "model=gpt-4" in result.output

    def test_unknown_tier_rejected(self, db, mock_build_provider):
        result = runner.invoke(app, ["rewrite", TEXT, "-t", "gold", "--db", db])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid request:" in result.output
        assert "Unknown tier: gold" in result.output
        assert mock_build_provider.return_value.calls == []

    def test_provider_failure(self, db, mock_build_provider, make_provider, provider_error):
        mock_build_provider.return_value = make_provider([provider_error])

        result = runner.invoke(app, ["rewrite", TEXT, "--db", db])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Rewrite failed:" in result.output

    def test_missing_config(self, db, tmp_path, mock_build_provider):
        result = runner.invoke(app, ["rewrite", TEXT, "--db", db, "-c", str(tmp_path / "missing.yaml")])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error loading config:" in result.output

    def test_config_default_model(self, db, tmp_path, mock_build_provider):
        """Test the configured default model is used when none is given."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("provider:\n  default_model: claude-3-haiku\n", encoding="utf-8")

        result = runner.invoke(app, [
            "rewrite", TEXT, "-t", "premium", "--db", db, "-c", str(config_path)
        ])

        assert result.exit_code == EXIT_CODE_PASS
        assert mock_build_provider.return_value.calls[0][1] == "claude-3-haiku"


class TestUsageCommand:
    """Test the usage command."""

    def test_usage_after_rewrite(self, db, mock_build_provider):
        """Test usage reflects a recorded rewrite."""
        runner.invoke(app, ["rewrite", TEXT, "-u", "alice", "--db", db])

        result = runner.invoke(app, ["usage", "-u", "alice", "--db", db])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Rewrites" in result.output
        assert "Budget" in result.output
        assert "Days left in month:" in result.output

    def test_usage_unknown_tier(self, db):
        result = runner.invoke(app, ["usage", "-t", "gold", "--db", db])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unknown tier: gold" in result.output


class TestCatalogueCommands:
    """Test estimate, models, presets, dials and init."""

    def test_estimate_default_length(self):
        result = runner.invoke(app, ["estimate"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Estimated tokens: 325" in result.output
        assert "Estimated cost: $0.0006" in result.output

    def test_estimate_unknown_model(self):
        result = runner.invoke(app, ["estimate", "-m", "gpt-9"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unsupported model: gpt-9" in result.output

    def test_models_for_tier(self):
        result = runner.invoke(app, ["models", "--tier", "free"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "gpt-3.5-turbo" in result.output
        assert "yes" in result.output
        assert "no" in result.output

    def test_presets(self):
        result = runner.invoke(app, ["presets"])

        assert result.exit_code == EXIT_CODE_PASS
        for preset_id in ("business", "academic", "social", "editorial"):
            assert preset_id in result.output

    def test_dials(self):
        result = runner.invoke(app, ["dials"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "formality" in result.output
        assert "10-90" in result.output

    def test_init(self, db):
        result = runner.invoke(app, ["init", "--db", db])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Database initialized successfully" in result.output

    def test_invalid_log_level(self):
        result = runner.invoke(app, ["--log-level", "LOUD", "presets"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unknown log level" in result.output
