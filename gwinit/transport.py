"""Gateway transport selection and command line construction."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .config import (
    BACKEND_COMMAND,
    DEFAULT_PROTOCOL,
    GATEWAY_LAUNCHER,
    GATEWAY_PACKAGE,
    HEALTH_ENDPOINT,
)
from .validation import Credential


@dataclass(frozen=True)
class Transport:
    """How the gateway exposes the backend over the network."""

    name: str
    display_name: str
    path_flag: str
    path: str
    output_transport: str


STREAMABLE_HTTP = Transport(
    name="StreamableHttp",
    display_name="SHTTP/streamableHttp",
    path_flag="--streamableHttpPath",
    path="/mcp",
    output_transport="streamableHttp",
)
SERVER_SENT_EVENTS = Transport(
    name="ServerSentEvents",
    display_name="SSE/Server-Sent Events",
    path_flag="--ssePath",
    path="/sse",
    output_transport="sse",
)
WEBSOCKET = Transport(
    name="WebSocket",
    display_name="WS/WebSocket",
    path_flag="--messagePath",
    path="/message",
    output_transport="ws",
)

PROTOCOL_ALIASES = {
    "SHTTP": STREAMABLE_HTTP,
    "STREAMABLEHTTP": STREAMABLE_HTTP,
    "SSE": SERVER_SENT_EVENTS,
    "WS": WEBSOCKET,
    "WEBSOCKET": WEBSOCKET,
}


def select_transport(protocol: Optional[str]) -> Transport:
    """Map a case-insensitive PROTOCOL value to a transport."""
    requested = protocol or DEFAULT_PROTOCOL
    transport = PROTOCOL_ALIASES.get(requested.upper())
    if transport is None:
        logging.warning(f"Invalid PROTOCOL: '{protocol}'. Using default: {DEFAULT_PROTOCOL}")
        transport = PROTOCOL_ALIASES[DEFAULT_PROTOCOL]
    logging.debug(f"Selected transport: {transport.name}")
    return transport


def build_backend_command(credential: Credential) -> str:
    """Command line the gateway runs as its stdio backend."""
    if credential.valid:
        return f"{BACKEND_COMMAND} --api-key {credential.value}"
    return BACKEND_COMMAND


def build_gateway_args(
    transport: Transport,
    port: int,
    cors_args: List[str],
    backend_command: str,
) -> List[str]:
    """Build the full gateway argument vector for a transport."""
    args = [
        GATEWAY_LAUNCHER,
        "--yes",
        GATEWAY_PACKAGE,
        "--port",
        str(port),
        transport.path_flag,
        transport.path,
        "--outputTransport",
        transport.output_transport,
    ]
    args.extend(cors_args)
    args.extend(["--healthEndpoint", HEALTH_ENDPOINT, "--stdio", backend_command])
    return args
