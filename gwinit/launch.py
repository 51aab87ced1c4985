"""Launch decision and process handoff.

This module turns validated settings into a LaunchPlan and hands the
process over to it:
- GatewaySettings, the validated settings plus the gateway argument vector
- LaunchPlan, what to run and as whom
- Launchers that replace the current process, directly or as another user
- The debug pause that keeps a container alive without starting anything
"""

import logging
import os
import re
import shutil
import signal
import subprocess
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import DEBUG_PACKAGES, MANAGED_USER, PRIVILEGE_DROP_TOOL, NormalizedConfig
from .transport import (
    Transport,
    build_backend_command,
    build_gateway_args,
    select_transport,
)
from .validation import (
    CorsPolicy,
    Credential,
    NetworkConfig,
    parse_cors,
    validate_api_key,
    validate_port,
)

DEBUG_MODE_PATTERN = re.compile(r"[1YyTt].*|[Oo][Nn]|[Ee][Nn][Aa][Bb][Ll][Ee].*", re.DOTALL)


class LaunchError(RuntimeError):
    """A launch precondition failed; the container cannot start."""


@dataclass(frozen=True)
class GatewaySettings:
    network: NetworkConfig
    credential: Credential
    cors: CorsPolicy
    transport: Transport
    argv: Tuple[str, ...]


@dataclass(frozen=True)
class LaunchPlan:
    """Final launch decision.

    run_as is the account to drop to before exec, None to keep the current
    identity.
    """

    argv: Tuple[str, ...]
    run_as: Optional[str] = None
    debug_pause: bool = False


def build_gateway_settings(config: NormalizedConfig, is_root: bool) -> GatewaySettings:
    """Validate PORT, API_KEY, CORS and PROTOCOL and build the gateway command."""
    network = validate_port(config.PORT, is_root)
    credential = validate_api_key(config.API_KEY)
    cors = parse_cors(config.CORS)
    transport = select_transport(config.PROTOCOL)

    argv = build_gateway_args(
        transport,
        network.port,
        cors.to_args(),
        build_backend_command(credential),
    )
    return GatewaySettings(
        network=network,
        credential=credential,
        cors=cors,
        transport=transport,
        argv=tuple(argv),
    )


def is_debug_mode(value: Optional[str]) -> bool:
    """Recognize 1/y/yes/t/true/on/enable(d) style values."""
    return value is not None and DEBUG_MODE_PATTERN.fullmatch(value) is not None


def log_launch_status(settings: GatewaySettings) -> None:
    logging.info(
        f"Launching MCP gateway with protocol: {settings.transport.display_name} "
        f"on port: {settings.network.port}"
    )
    if settings.credential.valid:
        logging.info("API_KEY authentication is ENABLED for the MCP server")
    else:
        logging.warning(
            "API_KEY authentication is DISABLED - server is open to unauthorized access"
        )


def plan_launch(
    settings: GatewaySettings,
    debug_mode: Optional[str],
    is_root: bool,
    user_name: str = MANAGED_USER,
    which=None,
) -> LaunchPlan:
    """Decide how the gateway gets started.

    Raises:
        LaunchError: If the gateway launcher is not installed, or a
            privileged port is requested without root.
    """
    if is_debug_mode(debug_mode):
        logging.debug(f"DEBUG_MODE={debug_mode!r}, gateway will not be started")
        return LaunchPlan(argv=settings.argv, debug_pause=True)

    log_launch_status(settings)

    if which is None:
        which = shutil.which

    launcher = settings.argv[0]
    if which(launcher) is None:
        raise LaunchError(f"{launcher} not available. Cannot start server.")

    if is_root:
        logging.debug(f"Running as root, dropping privileges to {user_name}")
        return LaunchPlan(argv=settings.argv, run_as=user_name)

    if settings.network.privileged:
        raise LaunchError(
            f"Cannot bind to privileged port {settings.network.port} without root"
        )
    return LaunchPlan(argv=settings.argv)


class DirectLauncher:
    """Replace the current process with the command."""

    def launch(self, argv):
        logging.debug(f"exec: {' '.join(argv)}")
        os.execvp(argv[0], list(argv))


class UserLauncher:
    """Replace the current process with the command running as another user."""

    def __init__(self, user_name: str, drop_tool: str = PRIVILEGE_DROP_TOOL):
        self.user_name = user_name
        self.drop_tool = drop_tool

    def launch(self, argv):
        command = [self.drop_tool, self.user_name, *argv]
        logging.debug(f"exec: {' '.join(command)}")
        os.execvp(self.drop_tool, command)


def select_launcher(
    drop_privileges: bool,
    user_name: str = MANAGED_USER,
    drop_tool: str = PRIVILEGE_DROP_TOOL,
):
    if drop_privileges:
        return UserLauncher(user_name, drop_tool)
    return DirectLauncher()


def install_debug_tools(packages=DEBUG_PACKAGES) -> bool:
    """Install debugging helpers with apk. Failure is only reported."""
    try:
        result = subprocess.run(
            ["apk", "add", "--no-cache", *packages],
            capture_output=True,
            check=False,
        )
    except OSError as e:
        logging.debug(f"apk not usable: {e}")
        result = None

    if result is None or result.returncode != 0:
        logging.warning(f"Failed to install {' '.join(packages)}")
        return False
    return True


def idle_forever():
    while True:
        signal.pause()


def pause_for_debugging(install=install_debug_tools, idle=idle_forever) -> None:
    logging.info(f"DEBUG MODE: Installing {' '.join(DEBUG_PACKAGES)} and pausing container")
    install()
    logging.info("Container paused for debugging. Exec into container to investigate.")
    idle()


def execute_plan(
    plan: LaunchPlan,
    drop_tool: str = PRIVILEGE_DROP_TOOL,
    pause=None,
) -> None:
    """Hand the process over to the plan. Only returns if idling ever stops."""
    if plan.debug_pause:
        if pause is None:
            pause = pause_for_debugging
        pause()
        return

    launcher = select_launcher(plan.run_as is not None, plan.run_as, drop_tool)
    launcher.launch(plan.argv)
