"""Tests for configuration loading and management."""

import pytest

from license_gateway.config import Config, ConfigurationError

SETTINGS_YAML = """
stripe:
  mode: live
plan:
  unit_amount: 499
  currency: gbp
  billing_period: P1Y
refunds:
  window: P7D
notifications:
  recipient: owner@example.com
"""

ENVIRON = {
    "STRIPE_SECRET_KEY": "sk_live_abc",
    "STRIPE_PUBLISHABLE_KEY": "pk_live_abc",
    "STRIPE_WEBHOOK_SECRET": "whsec_live",
    "TEST_STRIPE_SECRET_KEY": "sk_test_abc",
    "TEST_STRIPE_PUBLISHABLE_KEY": "pk_test_abc",
    "TEST_STRIPE_WEBHOOK_SECRET": "whsec_test",
}


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(SETTINGS_YAML, encoding="utf-8")
    return path


class TestConfigurationLoading:
    """Test basic configuration loading."""

    def test_loads_yaml_sections(self, settings_file):
        config = Config(str(settings_file), environ={})

        settings = config.settings
        assert config.config_path == settings_file
        assert settings.plan.unit_amount == 499
        assert settings.refunds.window == "P7D"
        assert settings.notifications.recipient == "owner@example.com"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            Config(str(tmp_path / "missing.yaml"), environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("stripe: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="parse YAML"):
            Config(str(path), environ={})

    def test_validation_failure(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("stripe:\n  mode: sandbox\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="validation failed"):
            Config(str(path), environ={})

    @pytest.mark.parametrize(
        "section",
        [
            "plan:\n  billing_period: monthly\n",
            "plan:\n  trial_period: P0D\n",
            "refunds:\n  window: 7 days\n",
        ],
    )
    def test_invalid_period_rejected(self, tmp_path, section):
        path = tmp_path / "settings.yaml"
        path.write_text(section, encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid ISO 8601 period"):
            Config(str(path), environ={})

    def test_trial_period_may_be_disabled(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("plan:\n  trial_period: null\n", encoding="utf-8")

        config = Config(str(path), environ={})

        assert config.settings.plan.trial_period is None

    def test_config_path_from_environment(self, settings_file):
        config = Config(environ={"CONFIG_PATH": str(settings_file)})

        assert config.config_path == settings_file


class TestStripeModeSelection:
    """Live and test key sets are chosen by mode."""

    def test_live_mode_uses_live_keys(self, settings_file):
        settings = Config(str(settings_file), environ=ENVIRON).settings

        assert settings.test_mode is False
        assert settings.credentials.secret_key == "sk_live_abc"
        assert settings.credentials.webhook_secret == "whsec_live"

    def test_stripe_mode_env_selects_test_keys(self, settings_file):
        settings = Config(str(settings_file), environ={**ENVIRON, "STRIPE_MODE": "TEST"}).settings

        assert settings.test_mode is True
        assert settings.credentials.secret_key == "sk_test_abc"
        assert settings.credentials.publishable_key == "pk_test_abc"

    def test_force_test_mode_overrides(self, settings_file):
        environ = {**ENVIRON, "STRIPE_MODE": "live", "FORCE_TEST_MODE": "true"}

        settings = Config(str(settings_file), environ=environ).settings

        assert settings.credentials.secret_key == "sk_test_abc"

    def test_missing_keys_resolve_to_none(self, settings_file):
        settings = Config(str(settings_file), environ={"STRIPE_SECRET_KEY": ""}).settings

        assert settings.credentials.secret_key is None
        assert settings.credentials.webhook_secret is None


class TestSecretOverrides:
    def test_notification_and_chat_secrets(self, settings_file):
        environ = {"RESEND_API_KEY": "re_1", "ADMIN_EMAIL": "ops@example.com", "OPENAI_API_KEY": "sk-1"}

        settings = Config(str(settings_file), environ=environ).settings

        assert settings.notifications.resend_api_key == "re_1"
        assert settings.notifications.recipient == "ops@example.com"
        assert settings.chat.api_key == "sk-1"

    def test_settings_are_frozen(self, settings_file):
        settings = Config(str(settings_file), environ={}).settings

        with pytest.raises(Exception):
            settings.plan.unit_amount = 1
