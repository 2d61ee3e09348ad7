"""
Configuration module for the albsync controller.

Loads configuration from environment variables.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from errors import ConfigurationError

MAX_CLUSTER_NAME_LENGTH = 11
DEFAULT_INGRESS_CLASS = "alb"


def validate_cluster_name(cluster_name: str) -> str:
    """
    Validate the cluster name embedded in generated load balancer names.

    Raises:
        ConfigurationError: If the name is empty, too long or contains '-'
    """
    if not cluster_name:
        raise ConfigurationError(
            "A cluster name must be defined (CLUSTER_NAME environment variable)"
        )
    if len(cluster_name) > MAX_CLUSTER_NAME_LENGTH:
        raise ConfigurationError(
            f"Cluster name must be {MAX_CLUSTER_NAME_LENGTH} characters or less"
        )
    if "-" in cluster_name:
        raise ConfigurationError("Cluster name cannot contain '-'")
    return cluster_name


@dataclass
class ClusterConfig:
    """Identity of the cluster whose load balancers this controller owns."""

    cluster_name: str = ""
    ingress_class: str = DEFAULT_INGRESS_CLASS

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            cluster_name=validate_cluster_name(os.getenv("CLUSTER_NAME", "")),
            ingress_class=os.getenv("INGRESS_CLASS", DEFAULT_INGRESS_CLASS),
        )


@dataclass
class ControllerConfig:
    """Sync loop configuration."""

    sync_interval: int = 30  # seconds
    max_concurrent_reconciles: int = 10
    max_targets_per_call: int = 20

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            sync_interval=int(os.getenv("SYNC_INTERVAL", "30")),
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "10")),
            max_targets_per_call=int(os.getenv("MAX_TARGETS_PER_CALL", "20")),
        )


@dataclass
class APIConfig:
    """Status API server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=int(os.getenv("API_PORT", "8080")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@dataclass
class SourceConfig:
    """Where declarations come from and which load balancer client applies them."""

    declarations_file: str = "declarations.yaml"
    lb_client: str = "memory"
    client_config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        client_config = {}
        if os.getenv("LB_CLIENT_CONFIG"):
            try:
                client_config = json.loads(os.getenv("LB_CLIENT_CONFIG"))
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"LB_CLIENT_CONFIG is not valid JSON: {e}")

        return cls(
            declarations_file=os.getenv("DECLARATIONS_FILE", "declarations.yaml"),
            lb_client=os.getenv("LB_CLIENT", "memory"),
            client_config=client_config,
        )


@dataclass
class Config:
    """Main configuration object."""

    cluster: ClusterConfig
    controller: ControllerConfig
    api: APIConfig
    source: SourceConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            cluster=ClusterConfig.from_env(),
            controller=ControllerConfig.from_env(),
            api=APIConfig.from_env(),
            source=SourceConfig.from_env(),
        )


# Global config instance, only used by the process entry point
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
