from __future__ import annotations

from dataclasses import dataclass

# Bumped at release time; embedded in the default User-Agent.
VERSION = "1.0.0"

DEFAULT_USER_AGENT = f"luno-api-python v{VERSION}"


@dataclass(frozen=True)
class ClientConfig:
    hostname: str = "api.luno.com"
    port: int = 443
    # Path to a PEM bundle; replaces the system trust store when set
    ca: str | None = None
    key_id: str | None = None
    key_secret: str | None = None
    # Default trading pair used by the resource methods
    pair: str = "XBTZAR"
    user_agent: str = DEFAULT_USER_AGENT
    # seconds, handed to requests as-is (None = wait forever)
    timeout: float | None = None
    # bounded dispatch pool; None = one thread per request, no cap
    max_workers: int | None = None

    @property
    def base_url(self) -> str:
        return f"https://{self.hostname}:{self.port}"

    @property
    def auth(self) -> tuple[str, str] | None:
        if self.key_id is None or self.key_secret is None:
            return None
        return (self.key_id, self.key_secret)
