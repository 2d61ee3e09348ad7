"""Unit tests for config.py - Configuration management."""

import os
import pytest
from unittest.mock import patch

import config
from config import (
    APIConfig,
    ClusterConfig,
    Config,
    ControllerConfig,
    SourceConfig,
    get_config,
    load_config,
    reset_config,
    validate_cluster_name,
)
from errors import ConfigurationError


class TestValidateClusterName:
    """Tests for validate_cluster_name."""

    def test_valid(self):
        assert validate_cluster_name("prod") == "prod"

    def test_max_length(self):
        assert validate_cluster_name("abcdefghijk") == "abcdefghijk"

    def test_empty_raises(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_cluster_name("")
        assert "CLUSTER_NAME" in str(exc_info.value)

    def test_too_long_raises(self):
        with pytest.raises(ConfigurationError):
            validate_cluster_name("abcdefghijkl")

    def test_hyphen_raises(self):
        with pytest.raises(ConfigurationError):
            validate_cluster_name("my-cluster")

    def test_is_value_error(self):
        """ConfigurationError can be caught as ValueError."""
        with pytest.raises(ValueError):
            validate_cluster_name("")


class TestClusterConfig:
    """Tests for ClusterConfig class."""

    def test_from_env(self):
        """Test loading configuration from environment variables."""
        env_vars = {"CLUSTER_NAME": "prod", "INGRESS_CLASS": "internal"}
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = ClusterConfig.from_env()
            assert cfg.cluster_name == "prod"
            assert cfg.ingress_class == "internal"

    def test_from_env_default_class(self):
        with patch.dict(os.environ, {"CLUSTER_NAME": "prod"}, clear=True):
            cfg = ClusterConfig.from_env()
            assert cfg.ingress_class == "alb"

    def test_from_env_missing_cluster_name_raises(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError):
                ClusterConfig.from_env()


class TestControllerConfig:
    """Tests for ControllerConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        cfg = ControllerConfig()
        assert cfg.sync_interval == 30
        assert cfg.max_concurrent_reconciles == 10
        assert cfg.max_targets_per_call == 20

    def test_from_env(self):
        """Test loading configuration from environment variables."""
        env_vars = {
            "SYNC_INTERVAL": "45",
            "MAX_CONCURRENT_RECONCILES": "8",
            "MAX_TARGETS_PER_CALL": "5",
        }
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = ControllerConfig.from_env()
            assert cfg.sync_interval == 45
            assert cfg.max_concurrent_reconciles == 8
            assert cfg.max_targets_per_call == 5

    def test_from_env_defaults(self):
        """Test that defaults are used when env vars not set."""
        with patch.dict(os.environ, {}, clear=True):
            cfg = ControllerConfig.from_env()
            assert cfg.sync_interval == 30
            assert cfg.max_concurrent_reconciles == 10


class TestAPIConfig:
    """Tests for APIConfig class."""

    def test_default_values(self):
        cfg = APIConfig()
        assert cfg.host == "0.0.0.0"
        assert cfg.port == 8080
        assert cfg.log_level == "INFO"

    def test_from_env(self):
        env_vars = {"API_HOST": "127.0.0.1", "API_PORT": "3000", "LOG_LEVEL": "DEBUG"}
        with patch.dict(os.environ, env_vars, clear=False):
            cfg = APIConfig.from_env()
            assert cfg.host == "127.0.0.1"
            assert cfg.port == 3000
            assert cfg.log_level == "DEBUG"


class TestSourceConfig:
    """Tests for SourceConfig class."""

    def test_from_env_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = SourceConfig.from_env()
            assert cfg.declarations_file == "declarations.yaml"
            assert cfg.lb_client == "memory"
            assert cfg.client_config == {}

    def test_from_env(self):
        env_vars = {
            "DECLARATIONS_FILE": "/etc/albsync/cluster.yaml",
            "LB_CLIENT": "aws",
            "LB_CLIENT_CONFIG": '{"region": "eu-west-1"}',
        }
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = SourceConfig.from_env()
            assert cfg.declarations_file == "/etc/albsync/cluster.yaml"
            assert cfg.lb_client == "aws"
            assert cfg.client_config == {"region": "eu-west-1"}

    def test_from_env_invalid_json_raises(self):
        with patch.dict(os.environ, {"LB_CLIENT_CONFIG": "not json"}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                SourceConfig.from_env()
            assert "LB_CLIENT_CONFIG" in str(exc_info.value)


class TestConfig:
    """Tests for main Config class."""

    def test_from_env(self):
        """Test loading full configuration from environment."""
        env_vars = {
            "CLUSTER_NAME": "prod",
            "SYNC_INTERVAL": "10",
            "API_PORT": "9000",
            "LB_CLIENT": "memory",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = Config.from_env()
            assert cfg.cluster.cluster_name == "prod"
            assert cfg.controller.sync_interval == 10
            assert cfg.api.port == 9000
            assert cfg.source.lb_client == "memory"


class TestConfigSingleton:
    """Tests for config singleton functions."""

    def setup_method(self):
        """Reset config before each test."""
        reset_config()

    def teardown_method(self):
        """Reset config after each test."""
        reset_config()

    def test_get_config_loads_if_none(self):
        with patch.dict(os.environ, {"CLUSTER_NAME": "prod"}, clear=False):
            cfg = get_config()
            assert isinstance(cfg, Config)

    def test_singleton_returns_same_instance(self):
        with patch.dict(os.environ, {"CLUSTER_NAME": "prod"}, clear=False):
            cfg1 = load_config()
            cfg2 = get_config()
            assert cfg1 is cfg2

    def test_reset_config(self):
        with patch.dict(os.environ, {"CLUSTER_NAME": "prod"}, clear=False):
            cfg1 = load_config()
            reset_config()
            assert config.config is None
            cfg2 = load_config()
            assert cfg1 is not cfg2
