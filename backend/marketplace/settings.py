from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    # Runtime
    environment: str = Field(default="development", validation_alias="APP_ENV")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # CORS / Frontend
    frontend_url: str | None = Field(default=None, validation_alias="FRONTEND_URL")
    frontend_urls: str | None = Field(default=None, validation_alias="FRONTEND_URLS")

    # Storage
    # "dynamodb" in deployed environments; "memory" for local runs and tests.
    store_backend: str = Field(default="dynamodb", validation_alias="STORE_BACKEND")
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    ddb_table_name: str | None = Field(default=None, validation_alias="DDB_TABLE_NAME")
    ddb_endpoint_url: str | None = Field(default=None, validation_alias="DDB_ENDPOINT_URL")

    # Auth (bearer JWT issued by the identity provider)
    auth_jwt_secret: str | None = Field(default=None, validation_alias="AUTH_JWT_SECRET")
    auth_jwt_algorithm: str = Field(default="HS256", validation_alias="AUTH_JWT_ALGORITHM")
    auth_jwks_url: str | None = Field(default=None, validation_alias="AUTH_JWKS_URL")
    auth_audience: str | None = Field(default=None, validation_alias="AUTH_AUDIENCE")
    auth_issuer: str | None = Field(default=None, validation_alias="AUTH_ISSUER")

    # Matching
    match_candidate_pool_limit: int = Field(
        default=2000, validation_alias="MATCH_CANDIDATE_POOL_LIMIT"
    )

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        if v in ("test", "testing"):
            return "test"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    @property
    def normalized_store_backend(self) -> str:
        v = (self.store_backend or "").strip().lower()
        if v in ("memory", "inmemory", "in-memory", "local"):
            return "memory"
        return "dynamodb"

    def require_in_production(self) -> None:
        """
        Enforce required settings in production.

        Development/test are allowed to run with partial config (in-memory
        store, shared-secret tokens), production must be fully configured.
        """
        if not self.is_production:
            return

        missing: list[str] = []

        if self.normalized_store_backend != "dynamodb":
            missing.append("STORE_BACKEND=dynamodb")
        if not self.ddb_table_name:
            missing.append("DDB_TABLE_NAME")

        # Either a JWKS endpoint (asymmetric) or a shared secret must verify tokens.
        if not (self.auth_jwks_url or self.auth_jwt_secret):
            missing.append("AUTH_JWKS_URL (or AUTH_JWT_SECRET)")

        if missing:
            raise RuntimeError(
                "Missing required production environment variables: "
                + ", ".join(missing)
            )

    def to_log_safe_dict(self) -> dict[str, object]:
        """
        A redacted representation safe for structured logs / diagnostics.
        """
        def _has(v: object) -> bool:
            return v is not None and str(v).strip() != ""

        return {
            "environment": self.normalized_environment,
            "port": self.port,
            "frontend": {
                "frontend_url": self.frontend_url,
                "frontend_urls": self.frontend_urls,
            },
            "store": {
                "backend": self.normalized_store_backend,
                "aws_region": self.aws_region,
                "ddb_table_name": self.ddb_table_name,
                "ddb_endpoint_url": self.ddb_endpoint_url,
            },
            "auth": {
                "jwt_secret_configured": _has(self.auth_jwt_secret),
                "jwt_algorithm": self.auth_jwt_algorithm,
                "jwks_url": self.auth_jwks_url,
                "audience": self.auth_audience,
                "issuer": self.auth_issuer,
            },
            "matching": {
                "candidate_pool_limit": self.match_candidate_pool_limit,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    s = Settings()
    s.require_in_production()
    return s


# Module-level singleton for call sites that read config at import time.
settings = get_settings()
