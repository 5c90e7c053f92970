"""Configuration management for the Cassandra metrics exporter"""
import re
from pathlib import Path
from typing import Dict, List, Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Configuration class with Pydantic validation and environment-based settings"""

    # Reconciliation settings
    reconcile_interval: int = Field(default=30, ge=1, description="Delay between inventory reconciliations in seconds")
    enumerate_timeout: float = Field(default=10.0, gt=0, description="Timeout for listing remote objects in seconds")

    # Remote connection
    connection_factory: str = Field(default="", description="Connection factory as 'module:callable'")
    connection_url: str = Field(
        default="service:jmx:rmi:///jndi/rmi://localhost:7199/jmxrmi",
        description="URL handed to the connection factory"
    )

    # Metric naming
    metrics_domain: str = Field(default="org.apache.cassandra.metrics", description="Object name domain of metric instruments")
    metric_prefix: str = Field(default="cassandra", description="Prefix for every metric family name")
    global_labels_str: str = Field(default="", description="Labels added to every sample (k=v,comma-separated)")
    exclusions_str: str = Field(default="", description="Excluded family or object name patterns (semicolon-separated)")

    # Server settings
    metrics_port: int = Field(default=9500, ge=1, le=65535, description="Metrics server port")
    metrics_host: str = Field(default="0.0.0.0", description="Metrics server host")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file path")

    # Service settings
    service_name: str = Field(default="cassandra-metrics-exporter", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")

    class Config:
        env_prefix = ""
        case_sensitive = False

    @validator('log_level', pre=True)
    def validate_log_level(cls, v):
        """Normalise and validate the log level name"""
        level = str(v).upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @validator('metric_prefix')
    def validate_metric_prefix(cls, v):
        """Prefix must be usable at the start of a metric name"""
        if v and not re.fullmatch(r"[a-zA-Z_][a-zA-Z0-9_]*", v):
            raise ValueError(f"Invalid metric prefix: {v}")
        return v

    @validator('global_labels_str')
    def validate_global_labels(cls, v):
        """Every global label must be key=value with a valid label name"""
        for key in _parse_pairs(v):
            if not re.fullmatch(r"[a-zA-Z_][a-zA-Z0-9_]*", key):
                raise ValueError(f"Invalid global label name: {key}")
        return v

    @validator('log_file')
    def ensure_log_directory(cls, v):
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def global_labels(self) -> Dict[str, str]:
        """Get global labels as a dictionary"""
        return _parse_pairs(self.global_labels_str)

    @property
    def exclusions(self) -> List[str]:
        """Get exclusion patterns as a list"""
        return [item.strip() for item in self.exclusions_str.split(";") if item.strip()]


def _parse_pairs(value: str) -> Dict[str, str]:
    pairs = {}
    if value:
        for pair in value.split(','):
            if '=' in pair:
                key, item = pair.split('=', 1)
                pairs[key.strip()] = item.strip()
    return pairs
