"""Environment configuration."""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError
from .models import AuthCredentials, Currency

DEFAULT_API_URL = "http://localhost:8080/api"


class Settings(BaseModel):
    """Runtime settings, read from POS_* environment variables."""

    api_url: str = DEFAULT_API_URL
    username: Optional[str] = None
    password: Optional[str] = None
    session_file: Optional[str] = None
    default_currency: Currency = Currency.XOF
    timeout: float = Field(default=30.0, gt=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the environment.

        Variables: POS_API_URL, POS_USERNAME, POS_PASSWORD, POS_SESSION_FILE,
        POS_DEFAULT_CURRENCY, POS_TIMEOUT, POS_LOG_LEVEL.
        """
        env = os.environ if environ is None else environ
        values = {
            "api_url": env.get("POS_API_URL"),
            "username": env.get("POS_USERNAME"),
            "password": env.get("POS_PASSWORD"),
            "session_file": env.get("POS_SESSION_FILE"),
            "default_currency": env.get("POS_DEFAULT_CURRENCY", "").upper() or None,
            "timeout": env.get("POS_TIMEOUT"),
            "log_level": env.get("POS_LOG_LEVEL", "").upper() or None,
        }
        try:
            return cls(**{key: value for key, value in values.items() if value})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid POS configuration: {e}") from e

    @property
    def credentials(self) -> Optional[AuthCredentials]:
        """Configured login, if both username and password are set."""
        if self.username and self.password:
            return AuthCredentials(username=self.username, password=self.password)
        return None
