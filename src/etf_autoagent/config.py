"""Environment-driven configuration for the ETF auto-agent services.

Settings are read once at start-up into a frozen pydantic model and passed
explicitly to the components that need them.
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from etf_autoagent.models.enums import ServiceMode


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or inconsistent."""


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """
    Static configuration shared by the planner, executor and verification
    server.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Planner
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"

    # Executor / server wallet
    privy_app_id: Optional[str] = None
    privy_app_secret: Optional[str] = None
    privy_auth_key: Optional[str] = None
    privy_api_url: str = "https://api.privy.io/v1"
    bridge_server_url: str = "http://localhost:3012"
    action_delay_seconds: float = Field(default=1.0, ge=0)

    # Twitter
    twitter_bearer_token: Optional[str] = None
    twitter_client_id: Optional[str] = None
    twitter_client_secret: Optional[str] = None
    base_url: str = "http://localhost:3000"

    # Flare
    coston2_rpc_url: Optional[str] = None
    flare_rpc_api_key: str = ""
    private_key: Optional[str] = None
    web2json_verifier_url: Optional[str] = None
    verifier_api_key: Optional[str] = None
    coston2_da_layer_url: Optional[str] = None
    flare_fdc_url: Optional[str] = None

    # Service selection
    use_mock_services: bool = False
    force_real_services: bool = False

    # Server
    cors_origin: str = "*"
    database_url: Optional[str] = None
    verification_ttl_seconds: int = Field(default=600, gt=0)
    expired_record_grace_seconds: int = Field(default=300, ge=0)
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Builds settings from environment variables.

        Args:
            env: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            A frozen Settings instance.
        """
        env = os.environ if env is None else env
        values = {
            "gemini_api_key": env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY"),
            "gemini_model": env.get("GEMINI_MODEL", "gemini-2.0-flash"),
            "privy_app_id": env.get("PRIVY_APP_ID"),
            "privy_app_secret": env.get("PRIVY_APP_SECRET"),
            "privy_auth_key": env.get("PRIVY_AUTH_KEY"),
            "privy_api_url": env.get("PRIVY_API_URL", "https://api.privy.io/v1"),
            "bridge_server_url": env.get("BRIDGE_SERVER_URL", "http://localhost:3012"),
            "action_delay_seconds": float(env.get("ACTION_DELAY_SECONDS", "1.0")),
            "twitter_bearer_token": env.get("TWITTER_BEARER_TOKEN"),
            "twitter_client_id": env.get("TWITTER_CLIENT_ID"),
            "twitter_client_secret": env.get("TWITTER_CLIENT_SECRET"),
            "base_url": env.get("BASE_URL", "http://localhost:3000"),
            "coston2_rpc_url": env.get("COSTON2_RPC_URL"),
            "flare_rpc_api_key": env.get("FLARE_RPC_API_KEY", ""),
            "private_key": env.get("PRIVATE_KEY"),
            "web2json_verifier_url": env.get("WEB2JSON_VERIFIER_URL_TESTNET"),
            "verifier_api_key": env.get("VERIFIER_API_KEY_TESTNET"),
            "coston2_da_layer_url": env.get("COSTON2_DA_LAYER_URL"),
            "flare_fdc_url": env.get("FLARE_FDC_URL"),
            "use_mock_services": _flag(env.get("USE_MOCK_SERVICES")),
            "force_real_services": _flag(env.get("FORCE_REAL_SERVICES")),
            "cors_origin": env.get("CORS_ORIGIN", "*"),
            "database_url": env.get("DATABASE_URL"),
            "verification_ttl_seconds": int(env.get("VERIFICATION_TTL_SECONDS", "600")),
            "expired_record_grace_seconds": int(env.get("EXPIRED_RECORD_GRACE_SECONDS", "300")),
            "environment": env.get("NODE_ENV") or env.get("ENVIRONMENT", "development"),
            "host": env.get("HOST", "0.0.0.0"),
            "port": int(env.get("PORT", "3000")),
            "log_level": env.get("LOG_LEVEL", "INFO").upper(),
        }
        return cls(**values)

    @property
    def has_flare_config(self) -> bool:
        return bool(
            self.coston2_rpc_url
            and self.private_key
            and self.web2json_verifier_url
            and self.verifier_api_key
        )

    @property
    def has_twitter_config(self) -> bool:
        return bool(self.twitter_bearer_token)

    @property
    def has_privy_config(self) -> bool:
        return bool(self.privy_app_id and self.privy_app_secret)

    @property
    def has_oauth_config(self) -> bool:
        return bool(self.twitter_client_id and self.twitter_client_secret)

    @property
    def service_mode(self) -> ServiceMode:
        """Mock unless real services are fully configured or forced."""
        if self.use_mock_services:
            return ServiceMode.MOCK
        if self.force_real_services:
            return ServiceMode.REAL
        if self.has_flare_config and self.has_twitter_config:
            return ServiceMode.REAL
        return ServiceMode.MOCK

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]

    def validate_real_services(self) -> None:
        """Fails fast when real services are forced but misconfigured.

        Raises:
            ConfigurationError: Listing every missing variable.
        """
        if not self.force_real_services or self.use_mock_services:
            return
        missing = []
        if not self.has_flare_config:
            missing.append(
                "Flare: COSTON2_RPC_URL, PRIVATE_KEY, "
                "WEB2JSON_VERIFIER_URL_TESTNET, VERIFIER_API_KEY_TESTNET"
            )
        if not self.has_twitter_config:
            missing.append("Twitter: TWITTER_BEARER_TOKEN")
        if missing:
            raise ConfigurationError(
                "FORCE_REAL_SERVICES=true but configuration is missing: "
                + "; ".join(missing)
            )
