import pytest

from spotify2jspf.crosscutting.config import (
    DEFAULT_USER_AGENT,
    ConfigError,
    ConverterConfig,
    load_config,
)


class TestLoadConfig:
    """Tests for environment-based configuration."""

    def test_defaults(self):
        config = load_config({})

        assert config == ConverterConfig()
        assert config.mb_base_url == "https://musicbrainz.org/ws/2"
        assert config.user_agent == DEFAULT_USER_AGENT
        assert config.timeout == 10.0
        assert config.max_attempts == 5
        assert config.retry_delay == 0.0
        assert config.request_interval == 1.0
        assert config.search_limit == 25

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv('SPOTIFY2JSPF_MAX_ATTEMPTS', '3')

        assert load_config().max_attempts == 3

    def test_overrides(self):
        config = load_config({
            'SPOTIFY2JSPF_MB_BASE_URL': 'http://localhost:5000/ws/2/',
            'SPOTIFY2JSPF_USER_AGENT': 'my-agent/1.0 ( me@example.com )',
            'SPOTIFY2JSPF_TIMEOUT': '2.5',
            'SPOTIFY2JSPF_MAX_ATTEMPTS': '2',
            'SPOTIFY2JSPF_RETRY_DELAY': '0.5',
            'SPOTIFY2JSPF_REQUEST_INTERVAL': '0',
            'SPOTIFY2JSPF_SEARCH_LIMIT': '100',
        })

        assert config.mb_base_url == 'http://localhost:5000/ws/2'
        assert config.user_agent == 'my-agent/1.0 ( me@example.com )'
        assert config.timeout == 2.5
        assert config.max_attempts == 2
        assert config.retry_delay == 0.5
        assert config.request_interval == 0.0
        assert config.search_limit == 100

    def test_blank_values_fall_back_to_defaults(self):
        config = load_config({'SPOTIFY2JSPF_USER_AGENT': '  ', 'SPOTIFY2JSPF_TIMEOUT': ''})

        assert config.user_agent == DEFAULT_USER_AGENT
        assert config.timeout == 10.0

    @pytest.mark.parametrize("key,value", [
        ('SPOTIFY2JSPF_TIMEOUT', 'fast'),
        ('SPOTIFY2JSPF_TIMEOUT', '0'),
        ('SPOTIFY2JSPF_MAX_ATTEMPTS', '0'),
        ('SPOTIFY2JSPF_MAX_ATTEMPTS', '2.5'),
        ('SPOTIFY2JSPF_RETRY_DELAY', '-1'),
        ('SPOTIFY2JSPF_SEARCH_LIMIT', '101'),
    ])
    def test_invalid_values(self, key, value):
        with pytest.raises(ConfigError, match=key):
            load_config({key: value})

    def test_summary_lists_every_setting(self):
        summary = ConverterConfig().summary()

        assert set(summary) == {
            'mb_base_url', 'user_agent', 'timeout', 'max_attempts',
            'retry_delay', 'request_interval', 'search_limit',
        }
