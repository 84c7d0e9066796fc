"""
Machine Identity — Host-stable bytes that anchor vault key derivation.

One strategy per operating system, chosen once by ``default_identity()``:

- Linux:   /etc/machine-id, falling back to /var/lib/dbus/machine-id
- macOS:   IOPlatformUUID reported by ``ioreg``
- Windows: MachineGuid under HKLM\\SOFTWARE\\Microsoft\\Cryptography

The identity is not secret. It binds decryption to the host that wrote a
record. Anything that regenerates these values (re-imaging the host,
``systemd-machine-id-setup``, a sysprep'd Windows clone) makes every stored
credential undecryptable, and the user has to reset credentials.
"""
import re
import sys
import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Sequence

from ..exceptions import IdentityUnavailable

logger = logging.getLogger("catalysh.vault")

LINUX_MACHINE_ID_PATHS = (
    Path("/etc/machine-id"),
    Path("/var/lib/dbus/machine-id"),
)

_IOREG_UUID = re.compile(r'"IOPlatformUUID"\s*=\s*"([^"]+)"')


class MachineIdentity(ABC):
    """Source of the machine key fed into key derivation."""

    name: str = "abstract"

    @abstractmethod
    def machine_key(self) -> bytes:
        """Return the identity bytes for this host.

        Raises:
            IdentityUnavailable: If no identity source is reachable.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} source={self.name}>"


class StaticIdentity(MachineIdentity):
    """Fixed identity, for tests and for embedders that manage their own."""

    name = "static"

    def __init__(self, value: bytes):
        if isinstance(value, str):
            value = value.encode("utf-8")
        if not value:
            raise IdentityUnavailable("Static machine identity cannot be empty")
        self._value = bytes(value)

    def machine_key(self) -> bytes:
        return self._value


class LinuxIdentity(MachineIdentity):
    """systemd/dbus machine-id."""

    name = "machine-id"

    def __init__(self, paths: Sequence[Path] = LINUX_MACHINE_ID_PATHS):
        self._paths = tuple(Path(p) for p in paths)

    def machine_key(self) -> bytes:
        for path in self._paths:
            try:
                value = path.read_text(encoding="utf-8").strip()
            except OSError as err:
                logger.debug("Machine id source %s unavailable: %s", path, err)
                continue
            if value:
                return value.encode("utf-8")
        raise IdentityUnavailable(
            "Could not read machine-id from any of: "
            + ", ".join(str(p) for p in self._paths)
        )


class MacOSIdentity(MachineIdentity):
    """Hardware platform UUID."""

    name = "IOPlatformUUID"

    def machine_key(self) -> bytes:
        try:
            result = subprocess.run(
                ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"],
                capture_output=True,
                text=True,
                timeout=10,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as err:
            raise IdentityUnavailable(
                f"ioreg command failed: {err}"
            ) from err
        match = _IOREG_UUID.search(result.stdout)
        if not match:
            raise IdentityUnavailable("No IOPlatformUUID found in ioreg output")
        return match.group(1).strip().encode("utf-8")


class WindowsIdentity(MachineIdentity):
    """Cryptography MachineGuid from the registry."""

    name = "MachineGuid"
    _KEY = r"SOFTWARE\Microsoft\Cryptography"

    def machine_key(self) -> bytes:
        try:
            import winreg
        except ImportError as err:
            raise IdentityUnavailable("winreg is not available") from err
        try:
            with winreg.OpenKey(
                winreg.HKEY_LOCAL_MACHINE,
                self._KEY,
                0,
                winreg.KEY_READ | winreg.KEY_WOW64_64KEY,
            ) as key:
                value, _ = winreg.QueryValueEx(key, "MachineGuid")
        except OSError as err:
            raise IdentityUnavailable(
                f"Could not read MachineGuid: {err}"
            ) from err
        value = str(value).strip()
        if not value:
            raise IdentityUnavailable("MachineGuid is empty")
        return value.encode("utf-8")


def default_identity(platform: Optional[str] = None) -> MachineIdentity:
    """Select the identity strategy for the running operating system.

    Args:
        platform: Override for ``sys.platform``.

    Returns:
        The MachineIdentity implementation for this host.

    Raises:
        IdentityUnavailable: If the platform has no identity strategy.
    """
    platform = platform or sys.platform
    if platform.startswith("linux"):
        return LinuxIdentity()
    if platform == "darwin":
        return MacOSIdentity()
    if platform in ("win32", "cygwin"):
        return WindowsIdentity()
    raise IdentityUnavailable(
        f"No machine identity source for platform {platform!r}"
    )
