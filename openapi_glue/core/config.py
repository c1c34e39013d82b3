from __future__ import annotations

import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, HttpUrl, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self

if TYPE_CHECKING:
    from openapi_glue.core.gateway.metrics import MetricsSink
    from openapi_glue.core.gateway.notify import NotifySink


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )
    PROJECT_NAME: str = "openapi-glue"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: HttpUrl | None = None

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # Route table source: path to a JSON/YAML file holding the parsed route table
    GLUE_SPECIFICATION: str | None = None
    # Service source: "package.module" or "package.module:attribute"
    GLUE_SERVICE: str | None = None

    # Gate
    GLUE_CHECK_TOKEN: bool = False
    GLUE_PUBLIC_KEY: str | None = None
    GLUE_PUBLIC_KEY_FILE: Path | None = None
    GLUE_TOKEN_VERIFY_TIMEOUT: float = 5.0
    # Honour X-Forwarded-For when the app runs behind a trusted proxy
    GLUE_TRUST_FORWARDED_FOR: bool = False

    GLUE_VALIDATE_RESPONSES: bool = True

    @model_validator(mode="after")
    def _check_gate_key(self) -> Self:
        if self.GLUE_CHECK_TOKEN and not (
            self.GLUE_PUBLIC_KEY or self.GLUE_PUBLIC_KEY_FILE
        ):
            message = (
                "GLUE_CHECK_TOKEN is enabled but neither GLUE_PUBLIC_KEY nor "
                "GLUE_PUBLIC_KEY_FILE is set; every protected route will answer 401."
            )
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)
        return self


settings = Settings()  # type: ignore


@dataclass(frozen=True)
class GlueConfig:
    """
    Immutable snapshot resolved once before registration.

    - specification: RouteTable, mapping, list of routes, factory, or path to a JSON/YAML file.
    - service: object/mapping of handlers, factory returning one, or "module[:attr]" path.
    - public_key: PEM public key used to verify RS256 bearer tokens.
    - metrics: optional MetricsSink whose counters are marked per request.
    - check_token: enables the access control gate for routes declaring x-AuthType.
    - notify: awaitable sink called as notify(request, context, message) on a
      missing authorization header. Defaults to a logging sink.
    """

    specification: Any
    service: Any
    public_key: str | bytes | None = None
    metrics: MetricsSink | None = None
    check_token: bool = False
    notify: NotifySink | None = None
    token_verify_timeout: float = 5.0
    trust_forwarded_for: bool = False
    validate_responses: bool = True
    unsupported_formats: frozenset[str] = frozenset({"int32", "int64"})

    @classmethod
    def from_settings(
        cls,
        source: Settings | None = None,
        **overrides: Any,
    ) -> GlueConfig:
        """Build a config from Settings (env / .env); keyword overrides win."""
        from openapi_glue.core.security import load_public_key

        s = source or settings
        values: dict[str, Any] = {
            "specification": s.GLUE_SPECIFICATION,
            "service": s.GLUE_SERVICE,
            "public_key": load_public_key(s.GLUE_PUBLIC_KEY, s.GLUE_PUBLIC_KEY_FILE),
            "check_token": s.GLUE_CHECK_TOKEN,
            "token_verify_timeout": s.GLUE_TOKEN_VERIFY_TIMEOUT,
            "trust_forwarded_for": s.GLUE_TRUST_FORWARDED_FOR,
            "validate_responses": s.GLUE_VALIDATE_RESPONSES,
        }
        values.update(overrides)
        return cls(**values)
