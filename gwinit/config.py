"""Environment configuration for gwinit.

This module handles reading the container environment:
- Defaults and fixed launch constants
- RawConfig, the recognized variables as found in the environment
- NormalizedConfig, the same values with incidental whitespace removed
"""

from dataclasses import dataclass, fields
from typing import Mapping, Optional

DEFAULT_PUID = 1000
DEFAULT_PGID = 1000
DEFAULT_PORT = 8010
DEFAULT_PROTOCOL = "SHTTP"

FIRST_RUN_FILE = "/tmp/first_run_complete"
MANAGED_USER = "node"

HEALTH_ENDPOINT = "/healthz"
GATEWAY_LAUNCHER = "npx"
GATEWAY_PACKAGE = "supergateway"
BACKEND_COMMAND = "npx -y @upstash/context7-mcp"
PRIVILEGE_DROP_TOOL = "su-exec"
DEBUG_PACKAGES = ("nano",)

# Locale independent, matches what POSIX calls [:space:] in the C locale
ASCII_WHITESPACE = " \t\n\r\x0b\x0c"


@dataclass(frozen=True)
class RawConfig:
    """Recognized environment variables, exactly as set."""

    PUID: Optional[str] = None
    PGID: Optional[str] = None
    PORT: Optional[str] = None
    API_KEY: Optional[str] = None
    PROTOCOL: Optional[str] = None
    CORS: Optional[str] = None
    DEBUG_MODE: Optional[str] = None

    @classmethod
    def variable_names(cls):
        return [f.name for f in fields(cls)]

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "RawConfig":
        """Pick the recognized variables out of an environment mapping."""
        return cls(**{name: environ.get(name) for name in cls.variable_names()})


@dataclass(frozen=True)
class NormalizedConfig(RawConfig):
    """RawConfig with every present value trimmed.

    Empty values, including values that are only whitespace, become None.
    """

    @classmethod
    def from_raw(cls, raw: RawConfig) -> "NormalizedConfig":
        values = {}
        for name in raw.variable_names():
            value = getattr(raw, name)
            if value:
                value = trim(value)
            values[name] = value or None
        return cls(**values)


def trim(value: str) -> str:
    """Strip leading and trailing ASCII whitespace."""
    return value.strip(ASCII_WHITESPACE)


def load_config(environ: Mapping[str, str]) -> NormalizedConfig:
    """Read and normalize the recognized variables from environ."""
    return NormalizedConfig.from_raw(RawConfig.from_environ(environ))
