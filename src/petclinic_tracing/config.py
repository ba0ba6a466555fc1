"""Tracing bootstrap configuration module.

This module provides explicit configuration records for the tracing
provider, the tracer bridge and structured logging. Values are read once
(from the environment or a YAML file), validated, and passed into the
constructors that need them.
"""

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlsplit

import yaml

from petclinic_tracing.exceptions import ConfigurationError

DEFAULT_EXPORT_TIMEOUT = 30.0  # seconds
DEFAULT_INSTRUMENTATION_NAME = "petclinic_tracing.bridge"

PROPAGATION_FORMATS = ("b3", "b3multi", "tracecontext")
ENDPOINT_SCHEMES = ("http", "https", "grpc")

_HOST_PORT_RE = re.compile(r"^(?P<host>\[[0-9A-Fa-f:.]+\]|[A-Za-z0-9._-]+):(?P<port>\d+)$")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def _require_bool(name: str, value: Any, optional: bool = False) -> None:
    if optional and value is None:
        return
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be true or false, got {value!r}")


def _require_str(name: str, value: Any, optional: bool = False) -> None:
    if optional and value is None:
        return
    if not isinstance(value, str):
        raise ConfigurationError(f"{name} must be a string, got {value!r}")


def _require_number(name: str, value: Any) -> None:
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number of seconds, got {value!r}")


def _require_str_list(name: str, value: Any) -> None:
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"{name} must be a list of field names, got {value!r}")
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ConfigurationError(f"Invalid {name} entry: {item!r}")


def parse_endpoint(endpoint: Optional[str]) -> Dict[str, Any]:
    """Parse an exporter endpoint into its parts.

    Accepts either ``host:port`` or a URL with an ``http``, ``https`` or
    ``grpc`` scheme.

    Args:
        endpoint: Endpoint string.

    Returns:
        Dictionary with ``scheme`` (None for bare host:port), ``host`` and
        ``port`` (None when the URL omits it).

    Raises:
        ConfigurationError: If the endpoint is empty or malformed.
    """
    if endpoint is None or not endpoint.strip():
        raise ConfigurationError("OTLP exporter endpoint is required")

    endpoint = endpoint.strip()

    if "://" not in endpoint:
        match = _HOST_PORT_RE.match(endpoint)
        if not match:
            raise ConfigurationError(f"Invalid OTLP endpoint: {endpoint!r}")
        port = int(match.group("port"))
        if not (1 <= port <= 65535):
            raise ConfigurationError(f"Invalid OTLP endpoint port: {port}")
        return {"scheme": None, "host": match.group("host"), "port": port}

    try:
        parts = urlsplit(endpoint)
        port = parts.port
    except ValueError as e:
        raise ConfigurationError(f"Invalid OTLP endpoint: {endpoint!r}", cause=e)

    if parts.scheme not in ENDPOINT_SCHEMES:
        raise ConfigurationError(
            f"Unsupported OTLP endpoint scheme: {parts.scheme!r}. "
            f"Must be one of {ENDPOINT_SCHEMES}"
        )
    if not parts.hostname:
        raise ConfigurationError(f"OTLP endpoint has no host: {endpoint!r}")
    if port == 0:
        raise ConfigurationError(f"Invalid OTLP endpoint port: {port}")

    return {"scheme": parts.scheme, "host": parts.hostname, "port": port}


@dataclass
class TracingConfig:
    """Configuration for the OpenTelemetry provider and tracer bridge."""

    enabled: bool = True
    service_name: str = "petclinic"
    otlp_endpoint: Optional[str] = None
    export_timeout: float = DEFAULT_EXPORT_TIMEOUT
    insecure: Optional[bool] = None  # None = derive from endpoint scheme
    propagation: str = "b3"
    instrumentation_name: str = DEFAULT_INSTRUMENTATION_NAME
    correlation_fields: List[str] = field(default_factory=list)
    remote_fields: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "TracingConfig":
        """Create configuration from environment variables."""
        insecure = os.getenv("PETCLINIC_OTLP_INSECURE")
        try:
            timeout = float(
                os.getenv("PETCLINIC_OTLP_EXPORT_TIMEOUT", str(DEFAULT_EXPORT_TIMEOUT))
            )
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid PETCLINIC_OTLP_EXPORT_TIMEOUT: "
                f"{os.getenv('PETCLINIC_OTLP_EXPORT_TIMEOUT')}",
                cause=e,
            )
        return cls(
            enabled=_env_bool("PETCLINIC_TRACING_ENABLED", "true"),
            service_name=os.getenv("PETCLINIC_APPLICATION_NAME", "petclinic"),
            otlp_endpoint=os.getenv("PETCLINIC_OTLP_EXPORTER_ENDPOINT"),
            export_timeout=timeout,
            insecure=None if insecure is None else _env_bool("PETCLINIC_OTLP_INSECURE", "false"),
            propagation=os.getenv("PETCLINIC_PROPAGATION", "b3").lower(),
            correlation_fields=_env_list("PETCLINIC_BAGGAGE_CORRELATION_FIELDS"),
            remote_fields=_env_list("PETCLINIC_BAGGAGE_REMOTE_FIELDS"),
        )

    def resolve_insecure(self) -> bool:
        """Decide whether the exporter channel is plaintext.

        Returns:
            The explicit ``insecure`` value when set, otherwise False only
            for ``https`` endpoints.
        """
        if self.insecure is not None:
            return self.insecure
        return parse_endpoint(self.otlp_endpoint)["scheme"] != "https"

    def validate(self) -> None:
        """Validate tracing settings.

        Raises:
            ConfigurationError: If any setting is unusable or has the wrong type.
        """
        if not isinstance(self.service_name, str) or not self.service_name.strip():
            raise ConfigurationError("Service name must be a non-empty string")
        if any(ch.isspace() for ch in self.service_name) or not self.service_name.isprintable():
            raise ConfigurationError(
                f"Service name must not contain whitespace: {self.service_name!r}"
            )

        _require_bool("enabled", self.enabled)
        _require_str("otlp_endpoint", self.otlp_endpoint, optional=True)
        _require_number("export_timeout", self.export_timeout)
        _require_bool("insecure", self.insecure, optional=True)
        _require_str("propagation", self.propagation)
        _require_str("instrumentation_name", self.instrumentation_name)
        _require_str_list("correlation_fields", self.correlation_fields)
        _require_str_list("remote_fields", self.remote_fields)

        if not self.enabled:
            return

        parse_endpoint(self.otlp_endpoint)

        if self.export_timeout <= 0:
            raise ConfigurationError(
                f"Export timeout must be positive: {self.export_timeout}"
            )
        if self.propagation not in PROPAGATION_FORMATS:
            raise ConfigurationError(
                f"Invalid propagation format: {self.propagation}. "
                f"Must be one of {PROPAGATION_FORMATS}"
            )
        if not self.instrumentation_name:
            raise ConfigurationError("Instrumentation name must not be empty")


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    level: str = "INFO"
    format: str = "json"  # or "text"
    trace_correlation: bool = True
    output_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """Create configuration from environment variables."""
        return cls(
            level=os.getenv("PETCLINIC_LOG_LEVEL", "INFO").upper(),
            format=os.getenv("PETCLINIC_LOG_FORMAT", "json").lower(),
            trace_correlation=_env_bool("PETCLINIC_LOG_TRACE_CORRELATION", "true"),
            output_file=os.getenv("PETCLINIC_LOG_FILE"),
        )

    def validate(self) -> None:
        """Validate logging settings.

        Raises:
            ConfigurationError: If level or format is unknown.
        """
        _require_bool("trace_correlation", self.trace_correlation)
        _require_str("output_file", self.output_file, optional=True)

        valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if self.level not in valid_levels:
            raise ConfigurationError(
                f"Invalid log level: {self.level}. Must be one of {valid_levels}"
            )
        if self.format not in ("json", "text"):
            raise ConfigurationError(
                f"Invalid log format: {self.format}. Must be 'json' or 'text'"
            )


@dataclass
class BootstrapConfig:
    """Complete tracing bootstrap configuration.

    Example:
        >>> # Create from environment variables
        >>> config = BootstrapConfig.from_env()
        >>>
        >>> # Create programmatically
        >>> config = BootstrapConfig(
        ...     tracing=TracingConfig(service_name="demo", otlp_endpoint="localhost:4317"),
        ...     logging=LoggingConfig(level="DEBUG", format="text"),
        ... )
        >>> config.validate()
    """

    tracing: TracingConfig = field(default_factory=TracingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "BootstrapConfig":
        """Create complete configuration from environment variables.

        Environment Variables:
            Tracing:
                PETCLINIC_TRACING_ENABLED: Enable tracing (default: true)
                PETCLINIC_APPLICATION_NAME: Reported service name (default: petclinic)
                PETCLINIC_OTLP_EXPORTER_ENDPOINT: OTLP/gRPC collector, e.g. localhost:4317
                PETCLINIC_OTLP_EXPORT_TIMEOUT: Export timeout in seconds (default: 30)
                PETCLINIC_OTLP_INSECURE: Force plaintext/TLS channel (default: by scheme)
                PETCLINIC_PROPAGATION: b3, b3multi or tracecontext (default: b3)
                PETCLINIC_BAGGAGE_CORRELATION_FIELDS: Baggage keys mirrored into logs
                PETCLINIC_BAGGAGE_REMOTE_FIELDS: Baggage keys propagated downstream

            Logging:
                PETCLINIC_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
                PETCLINIC_LOG_FORMAT: json or text (default: json)
                PETCLINIC_LOG_TRACE_CORRELATION: Include trace ids (default: true)
                PETCLINIC_LOG_FILE: Log file path (optional, defaults to stderr)

        Returns:
            BootstrapConfig with both sub-configurations.
        """
        return cls(
            tracing=TracingConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "BootstrapConfig":
        """Load configuration from a YAML file.

        The document may contain ``tracing`` and ``logging`` mappings whose
        keys match the dataclass fields. ``propagation``, ``level`` and
        ``format`` are case-folded the same way as in ``from_env``; value
        types are checked by ``validate()``.

        Args:
            path: Path to the YAML file.

        Returns:
            BootstrapConfig built from the file.

        Raises:
            ConfigurationError: If the file cannot be read or has unknown keys.
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}", cause=e)
        except IOError as e:
            raise ConfigurationError(f"Failed to read config file: {e}", cause=e)

        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a mapping")

        unknown = set(data) - {"tracing", "logging"}
        if unknown:
            raise ConfigurationError(f"Unknown config sections: {sorted(unknown)}")

        return cls(
            tracing=_build(TracingConfig, data.get("tracing") or {}),
            logging=_build(LoggingConfig, data.get("logging") or {}),
        )

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid.

        Example:
            >>> config = BootstrapConfig()
            >>> config.tracing.otlp_endpoint = "not a url"
            >>> config.validate()  # Raises ConfigurationError
        """
        self.tracing.validate()
        self.logging.validate()


# Same case folding as the from_env readers
_NORMALIZERS = {
    "propagation": str.lower,
    "level": str.upper,
    "format": str.lower,
}


def _build(cls: Any, values: Dict[str, Any]) -> Any:
    if not isinstance(values, dict):
        raise ConfigurationError(f"Section for {cls.__name__} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigurationError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")

    values = dict(values)
    for key, normalize in _NORMALIZERS.items():
        if key in known and isinstance(values.get(key), str):
            values[key] = normalize(values[key])
    return cls(**values)
