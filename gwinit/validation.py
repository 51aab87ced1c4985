"""Validation of the network facing settings: PORT, API_KEY and CORS.

Every validator here substitutes a safe value and logs a warning instead of
raising, so one bad variable never stops the container from starting.
"""

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, NamedTuple, Optional

from .config import DEFAULT_PORT, trim

MIN_PORT = 1
MAX_PORT = 65535
PRIVILEGED_PORT_LIMIT = 1024

SAFE_API_KEY_PATTERN = re.compile(r"[A-Za-z0-9_:.@+= -]{5,128}")
WEAK_API_KEYS = frozenset(["password", "secret", "admin", "token", "key", "test", "demo"])


@dataclass(frozen=True)
class NetworkConfig:
    port: int
    privileged: bool


def is_privileged_port(port: int) -> bool:
    return port < PRIVILEGED_PORT_LIMIT


def is_port_number(value: str) -> bool:
    # Bound the digit count so huge inputs never reach int()
    if not re.fullmatch(r"[0-9]+", value) or len(value.lstrip("0")) > len(str(MAX_PORT)):
        return False
    return MIN_PORT <= int(value.lstrip("0") or "0") <= MAX_PORT


def validate_port(value: Optional[str], is_root: bool) -> NetworkConfig:
    """Resolve PORT to a usable port number, falling back to the default."""
    port = DEFAULT_PORT
    if value is not None:
        if is_port_number(value):
            port = int(value.lstrip("0"))
        else:
            logging.warning(f"Invalid PORT: '{value}'. Using default: {DEFAULT_PORT}")

    privileged = is_privileged_port(port)
    if privileged and not is_root:
        logging.warning(f"Port {port} is privileged and might require root")
    return NetworkConfig(port=port, privileged=privileged)


@dataclass(frozen=True)
class Credential:
    value: Optional[str] = None
    valid: bool = False
    weak: bool = False


def validate_api_key(value: Optional[str]) -> Credential:
    """Check API_KEY against the safe pattern.

    A key that fails the pattern is dropped entirely. A key from the list of
    placeholder words is kept but reported as weak.
    """
    if value is None:
        return Credential()

    if not SAFE_API_KEY_PATTERN.fullmatch(value):
        logging.warning(
            "Invalid API_KEY. Must be 5-128 chars with safe symbols. Using no API_KEY."
        )
        return Credential()

    weak = value in WEAK_API_KEYS
    if weak:
        logging.warning("API_KEY is using a common value - consider more complex key")
    return Credential(value=value, valid=True, weak=weak)


class CorsKind(enum.Enum):
    ALLOW_ALL = "allow-all"
    REGEX_LITERAL = "regex"
    URL = "url"
    IPV4 = "ipv4"
    IPV4_URL = "ipv4-url"
    HOSTNAME = "hostname"
    REJECTED = "rejected"


@dataclass(frozen=True)
class CorsRule:
    kind: CorsKind
    pattern: str


class CorsPatternRule(NamedTuple):
    kind: CorsKind
    matches: Callable[[str], bool]


def _fullmatch(regex: str, flags: int = 0) -> Callable[[str], bool]:
    compiled = re.compile(regex, flags)
    return lambda token: compiled.fullmatch(token) is not None


# Checked in order, first match wins
CORS_PATTERN_RULES = (
    CorsPatternRule(CorsKind.ALLOW_ALL, _fullmatch(r"all|\*")),
    CorsPatternRule(CorsKind.REGEX_LITERAL, _fullmatch(r"/.*/", re.DOTALL)),
    CorsPatternRule(CorsKind.URL, lambda token: token.startswith(("http://", "https://"))),
    CorsPatternRule(CorsKind.IPV4, _fullmatch(r"[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+(:[0-9]+)?")),
    CorsPatternRule(
        CorsKind.IPV4_URL,
        _fullmatch(r"https?://[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+(:[0-9]+)?"),
    ),
    CorsPatternRule(
        CorsKind.HOSTNAME,
        _fullmatch(r"[a-zA-Z0-9][a-zA-Z0-9.-]+\.[a-zA-Z]{2,}(:[0-9]+)?"),
    ),
)


def classify_cors_pattern(token: str) -> CorsRule:
    for rule in CORS_PATTERN_RULES:
        if rule.matches(token):
            return CorsRule(rule.kind, token)
    return CorsRule(CorsKind.REJECTED, token)


@dataclass
class CorsPolicy:
    """Parsed CORS origins, in the order they were accepted."""

    allow_all: bool = False
    rules: List[CorsRule] = field(default_factory=list)
    rejected: List[str] = field(default_factory=list)

    def to_args(self) -> List[str]:
        """Gateway arguments: a bare --cors for allow-all, else one per origin."""
        if self.allow_all:
            return ["--cors"]
        args = []
        for rule in self.rules:
            args.extend(["--cors", rule.pattern])
        return args


def parse_cors(value: Optional[str]) -> CorsPolicy:
    """Parse a comma separated list of origin patterns.

    Invalid patterns are skipped one at a time. "all" or "*" switches to
    allow-all, throws away whatever was accepted before it and stops the scan.
    """
    policy = CorsPolicy()
    if not value:
        return policy

    for token in value.split(","):
        token = trim(token)
        if not token:
            continue

        rule = classify_cors_pattern(token)
        if rule.kind is CorsKind.ALLOW_ALL:
            logging.warning("Caution! CORS allowing all origins - security risk in production!")
            return CorsPolicy(allow_all=True, rejected=policy.rejected)
        if rule.kind is CorsKind.REJECTED:
            logging.warning(f"Invalid CORS pattern '{token}' - skipping")
            policy.rejected.append(token)
            continue

        logging.debug(f"Accepted CORS {rule.kind.value} pattern: {token}")
        policy.rules.append(rule)

    return policy
