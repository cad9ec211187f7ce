"""
Tests for configuration loading and the command line entry point.

Run with: pytest tests/test_config.py -v
"""

import logging

import pytest

from config import CONFIG_GUIDE, Config, LoggingConfig
from main import close_logging, main, print_config_guide, setup_logging
from version import version

TEST_ENV = {
    'SERVICE_NAME': 'BillingTest',
    'MAINTENANCE': 'true',
    'API_HOST': '127.0.0.1',
    'API_PORT': '9000',
    'SHUTDOWN_TIMEOUT': '10',
    'LOG_LEVEL': 'debug',
    'ADYEN_WEBHOOK_USE_BASIC_AUTH': 'true',
    'ADYEN_WEBHOOK_USERNAME': 'admin',
    'ADYEN_WEBHOOK_PASSWORD': 'supersecretpassword',
    'ADYEN_WEBHOOK_VERIFY_HMAC': 'true',
    'ADYEN_WEBHOOK_HMAC_SECRET': '44782DEF547AAA06C910C43932B1EB0C71FC68D9D0C057550C48EC2ACF6BA056',
}


@pytest.fixture()
def env(monkeypatch):
    """Set the test environment, restored after the test."""
    for name, _, _ in CONFIG_GUIDE:
        monkeypatch.delenv(name, raising=False)
    for name, value in TEST_ENV.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


class TestConfig:
    """Tests for loading configuration from the environment."""

    def test_load_from_environment(self, env):
        """Test that every section is read from the environment."""
        conf = Config()

        assert conf.service.name == 'BillingTest'
        assert conf.service.maintenance
        assert conf.service.host == '127.0.0.1'
        assert conf.service.port == 9000
        assert conf.service.shutdown_timeout == 10.0
        assert conf.logging.level == 'debug'
        assert conf.logging.file is None
        assert conf.webhook.use_basic_auth
        assert conf.webhook.username == 'admin'
        assert conf.webhook.password == 'supersecretpassword'
        assert conf.webhook.verify_hmac
        assert conf.webhook.hmac_secret == TEST_ENV['ADYEN_WEBHOOK_HMAC_SECRET']
        assert conf.is_valid()

    def test_defaults(self, monkeypatch):
        """Test the defaults used when nothing is set."""
        for name, _, _ in CONFIG_GUIDE:
            monkeypatch.delenv(name, raising=False)

        conf = Config()

        assert conf.service.host == '0.0.0.0'
        assert conf.service.port == 8204
        assert conf.service.shutdown_timeout == 35.0
        assert not conf.service.maintenance
        assert not conf.webhook.verify_hmac
        assert conf.validate() == []

    def test_basic_auth_requires_credentials(self, env):
        """Test that basic auth needs both username and password."""
        env.setenv('ADYEN_WEBHOOK_PASSWORD', '')

        errors = Config().validate()
        assert len(errors) == 1
        assert 'basic auth' in errors[0]

    def test_hmac_requires_secret(self, env):
        """Test that hmac verification needs a secret."""
        env.setenv('ADYEN_WEBHOOK_HMAC_SECRET', '')

        errors = Config().validate()
        assert errors == [
            "ADYEN_WEBHOOK_HMAC_SECRET is required when hmac verification is enabled"
        ]

    def test_hmac_secret_must_be_hex(self, env):
        """Test that a non-hex secret is rejected at startup."""
        env.setenv('ADYEN_WEBHOOK_HMAC_SECRET', 'supersecret')

        errors = Config().validate()
        assert errors == ["ADYEN_WEBHOOK_HMAC_SECRET must be a hex encoded string"]

    def test_port_range(self, env):
        """Test that the port must be a valid TCP port."""
        env.setenv('API_PORT', '70000')

        assert not Config().is_valid()


class TestCommandLine:
    """Tests for the command line entry point."""

    def test_version(self):
        """Test the semantic version string."""
        assert version().startswith('0.3.0-alpha.1')
        assert version('abc1234').endswith('(abc1234)')

    def test_config_guide_table(self, capsys):
        """Test that the table lists every variable."""
        assert main(['config']) == 0

        out = capsys.readouterr().out
        for name, _, _ in CONFIG_GUIDE:
            assert name in out

    def test_config_guide_list(self, capsys):
        """Test the list format of the configuration guide."""
        print_config_guide(list_mode=True)

        out = capsys.readouterr().out
        assert 'ADYEN_WEBHOOK_HMAC_SECRET\n' in out
        assert "default: '8204'" in out

    def test_serve_invalid_config(self, env):
        """Test that an invalid configuration exits before binding."""
        env.setenv('ADYEN_WEBHOOK_HMAC_SECRET', 'not-hex')
        env.setenv('API_PORT', '0')

        assert main(['serve']) == 1

    def test_setup_logging(self, tmp_path):
        """Test that the service logger writes to the configured file."""
        log_file = tmp_path / 'logs' / 'billing.log'
        logger = setup_logging(LoggingConfig(level='debug', file=str(log_file)), name='billing-test')
        try:
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 2
            logger.debug("hello from the billing service")
        finally:
            close_logging(logger)

        assert logger.handlers == []
        assert 'hello from the billing service' in log_file.read_text()
