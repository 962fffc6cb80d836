"""Resolve the TCP port of the Unity editor's bridge listener.

Priority: override environment variable > platform store > default port.
The platform store is the Windows user registry, the macOS launchd
environment (falling back to shell profiles), or the process environment
everywhere else.
"""

import os
import re
import subprocess
import sys
from pathlib import Path
from typing import Mapping, Optional, Sequence

from structlog import get_logger

logger = get_logger(__name__)

DEFAULT_PORT = 8090
PORT_ENV_VAR = "UNITY_PORT"

SHELL_PROFILES = (
    ".zshrc",
    ".zprofile",
    ".bash_profile",
    ".bashrc",
    ".profile",
)

LAUNCHCTL_TIMEOUT = 2.0


def parse_port(value: Optional[str]) -> Optional[int]:
    """Parse a port string, returning None unless it is an integer in 1..65535."""
    if value is None:
        return None
    text = value.strip().strip("'\"")
    if not text:
        return None
    try:
        port = int(text, 10)
    except ValueError:
        return None
    if port <= 0 or port > 65535:
        return None
    return port


def _scan_profile(path: Path, name: str) -> Optional[str]:
    """Return the last value assigned to ``name`` in a shell profile."""
    pattern = re.compile(
        rf"^\s*(?:export\s+)?{re.escape(name)}=(?P<value>[^\s#;]*)"
    )
    value = None
    with path.open(encoding="utf-8", errors="replace") as fh:
        for line in fh:
            match = pattern.match(line)
            if match:
                value = match.group("value")
    return value


class EndpointResolver:
    """Determines the port to dial. The result is cached per instance."""

    def __init__(
        self,
        env_var: str = PORT_ENV_VAR,
        default_port: int = DEFAULT_PORT,
        environ: Optional[Mapping[str, str]] = None,
        platform: Optional[str] = None,
        home: Optional[Path] = None,
        profiles: Sequence[str] = SHELL_PROFILES,
    ):
        self.env_var = env_var
        self.default_port = default_port
        self.environ = environ if environ is not None else os.environ
        self.platform = platform or sys.platform
        self.home = home
        self.profiles = tuple(profiles)
        self._port: Optional[int] = None

    def resolve(self) -> int:
        """Return the port, probing the environment on first call only."""
        if self._port is None:
            self._port = self._determine_port()
        return self._port

    def _determine_port(self) -> int:
        override = self.environ.get(self.env_var)
        port = parse_port(override)
        if port is not None:
            logger.debug("Using port from override variable", variable=self.env_var, port=port)
            return port
        if override:
            logger.debug("Ignoring unparseable override", variable=self.env_var, value=override)

        try:
            port = parse_port(self.read_platform_value())
        except Exception as e:
            logger.debug(
                "Failed to read platform port value",
                platform=self.platform,
                error=str(e),
            )
            port = None
        if port is not None:
            logger.debug("Using port from platform store", platform=self.platform, port=port)
            return port

        return self.default_port

    def read_platform_value(self) -> Optional[str]:
        """Read the raw port value from the platform's persisted store."""
        match self.platform:
            case "win32":
                return self._read_windows_registry()
            case "darwin":
                return self._read_macos_environment()
            case _:
                return self.environ.get(self.env_var)

    def _read_windows_registry(self) -> Optional[str]:
        import winreg

        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, "Environment") as key:
            try:
                value, _ = winreg.QueryValueEx(key, self.env_var)
            except FileNotFoundError:
                return None
        return str(value)

    def _read_macos_environment(self) -> Optional[str]:
        try:
            completed = subprocess.run(
                ["launchctl", "getenv", self.env_var],
                capture_output=True,
                text=True,
                timeout=LAUNCHCTL_TIMEOUT,
                check=False,
            )
            value = completed.stdout.strip()
            if value:
                return value
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("launchctl lookup failed", error=str(e))

        return self._read_shell_profiles()

    def _read_shell_profiles(self) -> Optional[str]:
        home = self.home or Path.home()
        for profile in self.profiles:
            path = home / profile
            if not path.is_file():
                continue
            try:
                value = _scan_profile(path, self.env_var)
            except OSError as e:
                logger.debug("Could not read shell profile", path=str(path), error=str(e))
                continue
            if value:
                return value
        return None


def resolve_port(environ: Optional[Mapping[str, str]] = None) -> int:
    """Resolve the port with default settings."""
    return EndpointResolver(environ=environ).resolve()
