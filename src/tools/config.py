import os
from dataclasses import dataclass
from typing import Optional

from models.errors import ConfigurationError
from tools.country_codes import COUNTRY_LOOKUP_URL

DEFAULT_UPSTREAM_HOST = "visa-requirement.p.rapidapi.com"

TRUTHY = {"1", "true", "yes", "on"}
SUPPORTED_METHODS = ("POST", "GET")


@dataclass(frozen=True)
class FieldNames:
    passport: str
    destination: str


CANONICAL_FIELDS = FieldNames(passport="passport", destination="destination")
ALIAS_FIELDS = FieldNames(passport="nationality", destination="country")


@dataclass(frozen=True)
class ProxyConfig:
    """
    Everything the visa proxy needs to talk to the provider. The handler variants
    differ only in these knobs: which key headers to send, which field names to
    try, and whether diagnostics are exposed.
    """

    api_key: Optional[str] = None
    upstream_host: str = DEFAULT_UPSTREAM_HOST
    upstream_url: str = f"https://{DEFAULT_UPSTREAM_HOST}/"
    method: str = "POST"
    key_headers: tuple[str, ...] = ("x-rapidapi-key", "x-api-key")
    field_names: FieldNames = CANONICAL_FIELDS
    alias_field_names: Optional[FieldNames] = ALIAS_FIELDS
    timeout: Optional[float] = None
    diagnostics_enabled: bool = False
    country_lookup_url: str = COUNTRY_LOOKUP_URL

    def build_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "x-rapidapi-host": self.upstream_host,
        }
        for name in self.key_headers:
            headers[name] = self.api_key or ""
        return headers


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in TRUTHY


def _env_timeout(name: str) -> Optional[float]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        timeout = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number of seconds, got {raw!r}") from exc
    if timeout <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return timeout


def _env_method(name: str) -> str:
    method = (os.getenv(name) or "POST").strip().upper()
    if method not in SUPPORTED_METHODS:
        allowed = ", ".join(SUPPORTED_METHODS)
        raise ConfigurationError(f"{name} must be one of {allowed}, got {method!r}")
    return method


def load_proxy_config() -> ProxyConfig:
    """
    Build the proxy configuration from the process environment.
    Raises ConfigurationError for values the proxy cannot use.
    """
    host = os.getenv("VISA_API_HOST") or DEFAULT_UPSTREAM_HOST
    return ProxyConfig(
        api_key=os.getenv("VISA_API_KEY") or None,
        upstream_host=host,
        upstream_url=os.getenv("VISA_API_URL") or f"https://{host}/",
        method=_env_method("VISA_API_METHOD"),
        timeout=_env_timeout("VISA_API_TIMEOUT"),
        diagnostics_enabled=_env_flag("VISA_PROXY_DIAGNOSTICS"),
    )
