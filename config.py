"""
Configuration module for the Billing service.

Loads settings from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from typing import List, Optional, Tuple
from dotenv import load_dotenv

from services.hmac_verifier import InvalidSecretError, decode_secret

# Load environment variables from .env file
load_dotenv()


# (variable, default, description) for every supported setting
CONFIG_GUIDE: List[Tuple[str, str, str]] = [
    ('SERVICE_NAME', 'BillingService', 'name reported in logs and the status endpoint'),
    ('MAINTENANCE', 'false', 'if true, the service starts in maintenance mode'),
    ('API_HOST', '0.0.0.0', 'the ip address to bind the web service on'),
    ('API_PORT', '8204', 'the port to bind the web service on (0 picks a free port)'),
    ('SHUTDOWN_TIMEOUT', '35', 'seconds in-flight requests get to finish on shutdown'),
    ('LOG_LEVEL', 'INFO', 'verbosity of logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)'),
    ('LOG_FILE', '', 'optional path of a file to also write logs to'),
    ('ADYEN_WEBHOOK_USE_BASIC_AUTH', 'false', 'require basic authentication on payment webhooks'),
    ('ADYEN_WEBHOOK_USERNAME', '', 'basic auth username for payment webhooks'),
    ('ADYEN_WEBHOOK_PASSWORD', '', 'basic auth password for payment webhooks, in plaintext'),
    ('ADYEN_WEBHOOK_VERIFY_HMAC', 'false', 'verify the hmac signature of every webhook notification'),
    ('ADYEN_WEBHOOK_HMAC_SECRET', '', 'hex encoded hmac secret for notification verification'),
]

_DEFAULTS = {name: default for name, default, _ in CONFIG_GUIDE}


def _get(name: str) -> str:
    return os.getenv(name, _DEFAULTS[name])


def _get_bool(name: str) -> bool:
    return _get(name).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class ServiceConfig:
    """Service-level configuration."""
    name: str
    host: str
    port: int
    maintenance: bool = False
    shutdown_timeout: float = 35.0


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str
    file: Optional[str]


@dataclass
class AdyenWebhookConfig:
    """Payment webhook authentication configuration."""
    use_basic_auth: bool = False
    username: str = ''
    password: str = ''
    verify_hmac: bool = False
    hmac_secret: str = ''


class Config:
    """
    Main configuration class that aggregates all config sections.

    Usage:
        from config import config

        print(config.service.port)
        print(config.webhook.verify_hmac)
    """

    def __init__(self):
        self._load_config()

    def _load_config(self):
        """Load all configuration from environment variables."""

        # Service configuration
        self.service = ServiceConfig(
            name=_get('SERVICE_NAME'),
            host=_get('API_HOST'),
            port=int(_get('API_PORT')),
            maintenance=_get_bool('MAINTENANCE'),
            shutdown_timeout=float(_get('SHUTDOWN_TIMEOUT'))
        )

        # Logging configuration
        self.logging = LoggingConfig(
            level=_get('LOG_LEVEL'),
            file=_get('LOG_FILE') or None
        )

        # Webhook configuration
        self.webhook = AdyenWebhookConfig(
            use_basic_auth=_get_bool('ADYEN_WEBHOOK_USE_BASIC_AUTH'),
            username=_get('ADYEN_WEBHOOK_USERNAME'),
            password=_get('ADYEN_WEBHOOK_PASSWORD'),
            verify_hmac=_get_bool('ADYEN_WEBHOOK_VERIFY_HMAC'),
            hmac_secret=_get('ADYEN_WEBHOOK_HMAC_SECRET')
        )

    def validate(self) -> List[str]:
        """
        Validate configuration values that depend on each other.

        Returns:
            List of validation error messages (empty if all valid)
        """
        errors = []

        if not 0 <= self.service.port <= 65535:
            errors.append("API_PORT must be between 0 and 65535")

        if self.service.shutdown_timeout <= 0:
            errors.append("SHUTDOWN_TIMEOUT must be positive")

        if self.webhook.use_basic_auth:
            if not self.webhook.username or not self.webhook.password:
                errors.append(
                    "ADYEN_WEBHOOK_USERNAME and ADYEN_WEBHOOK_PASSWORD are required "
                    "when basic auth is enabled"
                )

        if self.webhook.verify_hmac:
            if not self.webhook.hmac_secret:
                errors.append(
                    "ADYEN_WEBHOOK_HMAC_SECRET is required when hmac verification is enabled"
                )
            else:
                try:
                    decode_secret(self.webhook.hmac_secret)
                except InvalidSecretError:
                    errors.append("ADYEN_WEBHOOK_HMAC_SECRET must be a hex encoded string")

        return errors

    def is_valid(self) -> bool:
        """Check if configuration is valid."""
        return len(self.validate()) == 0


# Global configuration instance
config = Config()
