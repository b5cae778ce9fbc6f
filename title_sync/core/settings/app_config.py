"""Service runtime configuration."""

from typing import Literal

from pydantic import BaseModel


class AppConfig(BaseModel, frozen=True):
    """Service identity, environment, and shutdown behaviour."""

    name: str
    env: Literal["development", "staging", "production"]
    debug: bool
    shutdown_grace_seconds: float = 10.0

    @property
    def drains_on_shutdown(self) -> bool:
        """Whether shutdown waits for title attempts still in flight."""
        return self.shutdown_grace_seconds > 0
