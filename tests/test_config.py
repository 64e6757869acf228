import pytest

from etf_autoagent.config import ConfigurationError, Settings
from etf_autoagent.models.enums import ServiceMode

REAL_ENV = {
    "COSTON2_RPC_URL": "https://rpc.example/",
    "PRIVATE_KEY": "0xkey",
    "WEB2JSON_VERIFIER_URL_TESTNET": "https://verifier.example/",
    "VERIFIER_API_KEY_TESTNET": "vkey",
    "TWITTER_BEARER_TOKEN": "bearer",
}


def test_defaults():
    settings = Settings.from_env({})
    assert settings.gemini_api_key is None
    assert settings.port == 3000
    assert settings.cors_origins == ["*"]
    assert settings.service_mode == ServiceMode.MOCK
    assert settings.environment == "development"


def test_from_env_values():
    settings = Settings.from_env(
        {
            "GOOGLE_API_KEY": "g-key",
            "PORT": "8080",
            "CORS_ORIGIN": "https://a.example, https://b.example",
            "NODE_ENV": "production",
            "ACTION_DELAY_SECONDS": "0.5",
            "LOG_LEVEL": "debug",
        }
    )
    assert settings.gemini_api_key == "g-key"
    assert settings.port == 8080
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.environment == "production"
    assert settings.action_delay_seconds == 0.5
    assert settings.log_level == "DEBUG"


def test_verification_ttl_from_env():
    assert Settings.from_env({}).verification_ttl_seconds == 600
    settings = Settings.from_env(
        {"VERIFICATION_TTL_SECONDS": "120", "EXPIRED_RECORD_GRACE_SECONDS": "30"}
    )
    assert settings.verification_ttl_seconds == 120
    assert settings.expired_record_grace_seconds == 30
    with pytest.raises(ValueError):
        Settings.from_env({"VERIFICATION_TTL_SECONDS": "0"})


def test_privy_config_needs_id_and_secret():
    assert not Settings(privy_app_id="id").has_privy_config
    assert Settings(privy_app_id="id", privy_app_secret="secret").has_privy_config


def test_settings_are_frozen():
    settings = Settings()
    with pytest.raises(ValueError):
        settings.port = 1


def test_real_mode_when_configured():
    assert Settings.from_env(REAL_ENV).service_mode == ServiceMode.REAL


def test_mock_flag_wins():
    env = {**REAL_ENV, "USE_MOCK_SERVICES": "true", "FORCE_REAL_SERVICES": "true"}
    settings = Settings.from_env(env)
    assert settings.service_mode == ServiceMode.MOCK
    settings.validate_real_services()


def test_forced_real_lists_missing_config():
    settings = Settings.from_env({"FORCE_REAL_SERVICES": "yes"})
    assert settings.service_mode == ServiceMode.REAL
    with pytest.raises(ConfigurationError) as exc:
        settings.validate_real_services()
    assert "COSTON2_RPC_URL" in str(exc.value)
    assert "TWITTER_BEARER_TOKEN" in str(exc.value)


def test_credential_flags():
    settings = Settings(
        privy_app_id="id",
        privy_app_secret="secret",
        twitter_client_id="cid",
        twitter_client_secret="cs",
    )
    assert settings.has_privy_config
    assert settings.has_oauth_config
    assert not settings.has_flare_config
