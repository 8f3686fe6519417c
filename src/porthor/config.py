"""Configuration for Porthor.

Porthor is configured by an optional YAML file whose keys are the camel-case
forms of the settings below. Secrets and deployment-specific settings can be
injected via environment variables, which take precedence over the file. If
there is no configuration file, every setting comes from the environment.

Only the settings with explicit ``validation_alias`` settings support
configuration via the ``PORTHOR_*`` environment variables.
"""

from __future__ import annotations

from ipaddress import IPv4Network, IPv6Network
from pathlib import Path
from typing import Annotated, Any, Self, override
from urllib.parse import urlencode, urljoin

import yaml
from pydantic import (
    AliasChoices,
    Field,
    HttpUrl,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, Profile, configure_logging
from safir.pydantic import HumanTimedelta

from .constants import PROVIDER_TIMEOUT
from .services.redirect import DomainPattern

__all__ = [
    "CamelCaseSettings",
    "Config",
    "EnvFirstSettings",
    "SupabaseConfig",
]


class CamelCaseSettings(BaseSettings):
    """Base class for Pydantic settings supporting camel-case.

    This base class also forbids all extra attributes. It should be used as
    the base class (possibly indirectly) for all Porthor configuration models
    that support environment variable overrides.
    """

    model_config = SettingsConfigDict(
        alias_generator=to_camel, extra="forbid", populate_by_name=True
    )


class EnvFirstSettings(CamelCaseSettings):
    """Base class for Pydantic settings with environment overrides.

    Classes that inherit from this base class will prioritize environment
    variables over arguments to the class constructor.
    """

    @override
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Override the sources of settings.

        Deactivate :file:`.env` and secret file support. Allow environment
        variables to override init parameters, since init parameters come
        from the YAML configuration file and we want environment variables to
        take precedent.
        """
        return (env_settings, init_settings)


class SupabaseConfig(EnvFirstSettings):
    """Configuration for the Supabase identity provider."""

    url: HttpUrl = Field(
        ...,
        title="Supabase project URL",
        description="Base URL of the Supabase project API",
        examples=["https://abcdefghijklmnop.supabase.co"],
        validation_alias=AliasChoices("PORTHOR_SUPABASE_URL", "url"),
    )

    anon_key: SecretStr = Field(
        ...,
        title="Anonymous API key",
        description="Public API key of the Supabase project",
        validation_alias=AliasChoices(
            "PORTHOR_SUPABASE_ANON_KEY", "anonKey"
        ),
    )

    service_role_key: SecretStr | None = Field(
        None,
        title="Service role API key",
        description=(
            "Privileged API key of the Supabase project. If set, it is used"
            " for session refresh requests instead of the anonymous key."
        ),
        validation_alias=AliasChoices(
            "PORTHOR_SUPABASE_SERVICE_ROLE_KEY", "serviceRoleKey"
        ),
    )

    @property
    def project_ref(self) -> str:
        """Project reference, the first component of the project hostname."""
        # HttpUrl guarantees that the host is not None, but this is not
        # reflected in the type system so we have to check for mypy purposes.
        if not self.url.host:
            raise RuntimeError("Supabase URL does not contain a hostname")
        return self.url.host.split(".", 1)[0]


class Config(EnvFirstSettings):
    """Configuration for Porthor."""

    base_url: HttpUrl = Field(
        ...,
        title="Base URL",
        description=(
            "Base URL of the login user interface. The login page and the"
            " default landing page are resolved relative to this URL."
        ),
        examples=["https://auth.example.com"],
        validation_alias=AliasChoices("PORTHOR_BASE_URL", "baseUrl"),
    )

    login_path: str = Field(
        "/login",
        title="Login page path",
        description="Path of the login page, relative to the base URL",
    )

    default_redirect_path: str = Field(
        "/dashboard",
        title="Default landing page path",
        description=(
            "Where users are sent after login if they did not request a"
            " valid destination, relative to the base URL"
        ),
    )

    allowed_domains: Annotated[list[str], NoDecode] = Field(
        ["localhost"],
        title="Allowed redirect domains",
        description=(
            "Hostnames to which users may be redirected after login. Each"
            " entry is either an exact hostname or a wildcard of the form"
            " ``*.example.com``, which matches ``example.com`` and all of"
            " its subdomains. May be given as a comma-separated string."
        ),
        examples=[["app.example.com", "*.example.org"]],
        validation_alias=AliasChoices(
            "PORTHOR_ALLOWED_DOMAINS", "allowedDomains"
        ),
    )

    cookie_domain: str | None = Field(
        None,
        title="Cookie domain",
        description=(
            "Domain attribute for the session cookie. Use a leading dot,"
            " such as ``.example.com``, to share the session with every"
            " subdomain. If not set, cookies are scoped to the host that"
            " set them."
        ),
        validation_alias=AliasChoices(
            "PORTHOR_COOKIE_DOMAIN", "cookieDomain"
        ),
    )

    production: bool = Field(
        False,
        title="Production deployment",
        description="Whether this is a production deployment",
        validation_alias=AliasChoices("PORTHOR_PRODUCTION", "production"),
    )

    cookie_secure: bool | None = Field(
        None,
        title="Secure cookies",
        description=(
            "Whether to mark cookies as secure. Defaults to true in"
            " production deployments and false otherwise."
        ),
        validation_alias=AliasChoices(
            "PORTHOR_COOKIE_SECURE", "cookieSecure"
        ),
    )

    provider_timeout: HumanTimedelta = Field(
        PROVIDER_TIMEOUT,
        title="Identity provider timeout",
        description=(
            "Maximum duration of any single call to the identity provider."
            " A call that takes longer is treated as a failure."
        ),
    )

    log_level: LogLevel = Field(
        LogLevel.INFO,
        title="Logging level",
        description="Python logging level",
        validation_alias=AliasChoices("PORTHOR_LOG_LEVEL", "logLevel"),
    )

    log_profile: Profile = Field(
        Profile.production,
        title="Logging profile",
        description="Set to development for human-readable logs",
        validation_alias=AliasChoices("PORTHOR_LOG_PROFILE", "logProfile"),
    )

    proxies: list[IPv4Network | IPv6Network] | None = Field(
        None,
        title="Trusted incoming proxy netblocks",
        description=(
            "If this is set to a non-empty list, it will be used as the"
            " trusted list of proxies when parsing the ``X-Forwarded-For``"
            " HTTP header in incoming requests, so that the client IP"
            " address can be logged accurately."
        ),
    )

    slack_alerts: bool = Field(
        False,
        title="Enable Slack alerts",
        description=(
            "Whether to enable Slack alerts. If true, ``slack_webhook`` must"
            " also be set."
        ),
    )

    slack_webhook: SecretStr | None = Field(
        None,
        title="Slack webhook for alerts",
        description="If set, alerts will be posted to this Slack webhook",
        validation_alias=AliasChoices(
            "PORTHOR_SLACK_WEBHOOK", "slackWebhook"
        ),
    )

    supabase: SupabaseConfig = Field(
        default_factory=SupabaseConfig,
        title="Supabase configuration",
        description="Configuration for the Supabase identity provider",
    )

    @field_validator("allowed_domains", mode="before")
    @classmethod
    def _split_allowed_domains(cls, v: Any) -> Any:
        """Accept a comma-separated string, as used in the environment."""
        if isinstance(v, str):
            return [d.strip() for d in v.split(",") if d.strip()]
        return v

    @field_validator("allowed_domains")
    @classmethod
    def _validate_allowed_domains(cls, v: list[str]) -> list[str]:
        """Check and normalize each pattern.

        Any invalid pattern is a fatal configuration error rather than
        being ignored, so that a typo cannot silently disable a domain.
        """
        return [str(DomainPattern.from_string(d)) for d in v]

    @field_validator("login_path", "default_redirect_path")
    @classmethod
    def _validate_path(cls, v: str) -> str:
        if not v.startswith("/") or v.startswith("//"):
            raise ValueError(f"path {v} must start with a single /")
        return v

    @model_validator(mode="after")
    def _validate_slack(self) -> Self:
        if self.slack_alerts and not self.slack_webhook:
            raise ValueError("slackWebhook must be set if slackAlerts is true")
        return self

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct a Config object from a configuration file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML.

        Returns
        -------
        Config
            The corresponding `Config` object.
        """
        with path.open("r") as f:
            return cls.model_validate(yaml.safe_load(f) or {})

    @property
    def auth_cookie_name(self) -> str:
        """Name of the session cookie.

        Derived from the Supabase project so that deployments sharing a
        cookie domain do not collide, and matching the name used by the
        Supabase client libraries.
        """
        return f"sb-{self.supabase.project_ref}-auth-token"

    @property
    def code_verifier_cookie_name(self) -> str:
        """Name of the cookie holding the PKCE code verifier."""
        return f"{self.auth_cookie_name}-code-verifier"

    @property
    def default_redirect_url(self) -> str:
        """Landing page after login if no valid destination was requested."""
        return urljoin(str(self.base_url), self.default_redirect_path)

    @property
    def login_url(self) -> str:
        """URL of the login page."""
        return urljoin(str(self.base_url), self.login_path)

    @property
    def secure_cookies(self) -> bool:
        """Whether cookies should be marked as secure."""
        if self.cookie_secure is not None:
            return self.cookie_secure
        return self.production

    def build_login_url(
        self, *, redirect: str | None = None, error: str | None = None
    ) -> str:
        """Construct a URL to the login page.

        Parameters
        ----------
        redirect
            URL to which the login page should return the user.
        error
            Error code or message to display on the login page.

        Returns
        -------
        str
            The login URL with the given query parameters.
        """
        params = {}
        if redirect is not None:
            params["redirect"] = redirect
        if error is not None:
            params["error"] = error
        if not params:
            return self.login_url
        return f"{self.login_url}?{urlencode(params)}"

    def configure_logging(self) -> None:
        """Configure logging based on the Porthor configuration."""
        configure_logging(
            name="porthor",
            profile=self.log_profile,
            log_level=self.log_level,
            add_timestamp=True,
        )
