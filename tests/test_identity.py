"""Tests for machine identity sources."""
import subprocess
import sys
import types

import pytest

from catalysh_session.exceptions import IdentityUnavailable
from catalysh_session.vault import identity as identity_mod
from catalysh_session.vault.identity import (
    LinuxIdentity,
    MacOSIdentity,
    StaticIdentity,
    WindowsIdentity,
    default_identity,
)


IOREG_OUTPUT = """
+-o MacBookPro18,3  <class IOPlatformExpertDevice, id 0x100000110, registered>
    {
      "IOPlatformSerialNumber" = "C02XXXXXXXXX"
      "IOPlatformUUID" = "6A1B2C3D-4E5F-6789-ABCD-EF0123456789"
      "model" = <"MacBookPro18,3">
    }
"""

MACHINE_GUID = "9f8e7d6c-5b4a-3210-fedc-ba9876543210"


class _RegistryKey:
    """Handle returned by the fake ``winreg.OpenKey``."""

    def __init__(self, path):
        self.path = path

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def fake_winreg(guid=MACHINE_GUID, error=None):
    """Build a stand-in ``winreg`` module serving one MachineGuid value."""
    calls = []

    def open_key(root, path, reserved, access):
        calls.append((root, path, reserved, access))
        if error is not None:
            raise error
        return _RegistryKey(path)

    def query_value_ex(key, name):
        assert name == "MachineGuid"
        return guid, 1

    return types.SimpleNamespace(
        HKEY_LOCAL_MACHINE=0x80000002,
        KEY_READ=0x20019,
        KEY_WOW64_64KEY=0x0100,
        OpenKey=open_key,
        QueryValueEx=query_value_ex,
        calls=calls,
    )


class TestLinuxIdentity:
    """Tests for the machine-id file source."""

    def test_reads_primary_machine_id(self, tmp_path):
        """Test that /etc/machine-id is read and stripped."""
        primary = tmp_path / "machine-id"
        primary.write_text("0123456789abcdef0123456789abcdef\n")
        ident = LinuxIdentity([primary, tmp_path / "dbus-machine-id"])
        assert ident.machine_key() == b"0123456789abcdef0123456789abcdef"

    def test_falls_back_to_dbus(self, tmp_path):
        """Test falling back to the D-Bus machine-id."""
        fallback = tmp_path / "dbus-machine-id"
        fallback.write_text("fedcba9876543210\n")
        ident = LinuxIdentity([tmp_path / "missing", fallback])
        assert ident.machine_key() == b"fedcba9876543210"

    def test_empty_file_is_skipped(self, tmp_path):
        """Test that a blank machine-id file is ignored."""
        empty = tmp_path / "machine-id"
        empty.write_text("   \n")
        fallback = tmp_path / "dbus-machine-id"
        fallback.write_text("abc")
        assert LinuxIdentity([empty, fallback]).machine_key() == b"abc"

    def test_no_source_raises(self, tmp_path):
        """Test IdentityUnavailable when no file exists."""
        ident = LinuxIdentity([tmp_path / "a", tmp_path / "b"])
        with pytest.raises(IdentityUnavailable):
            ident.machine_key()

    def test_deterministic(self, tmp_path):
        """Test that repeated reads return the same key."""
        primary = tmp_path / "machine-id"
        primary.write_text("stable-id")
        ident = LinuxIdentity([primary])
        assert ident.machine_key() == ident.machine_key()


class TestMacOSIdentity:
    """Tests for the IOPlatformUUID source."""

    def test_parses_platform_uuid(self, monkeypatch):
        """Test extracting IOPlatformUUID from ioreg output."""
        def fake_run(*args, **kwargs):
            return subprocess.CompletedProcess(args, 0, stdout=IOREG_OUTPUT, stderr="")

        monkeypatch.setattr(identity_mod.subprocess, "run", fake_run)
        assert MacOSIdentity().machine_key() == b"6A1B2C3D-4E5F-6789-ABCD-EF0123456789"

    def test_missing_uuid_raises(self, monkeypatch):
        """Test IdentityUnavailable when ioreg prints no UUID."""
        def fake_run(*args, **kwargs):
            return subprocess.CompletedProcess(args, 0, stdout="{}", stderr="")

        monkeypatch.setattr(identity_mod.subprocess, "run", fake_run)
        with pytest.raises(IdentityUnavailable):
            MacOSIdentity().machine_key()

    def test_command_failure_raises(self, monkeypatch):
        """Test IdentityUnavailable when ioreg cannot run."""
        def fake_run(*args, **kwargs):
            raise FileNotFoundError("ioreg")

        monkeypatch.setattr(identity_mod.subprocess, "run", fake_run)
        with pytest.raises(IdentityUnavailable):
            MacOSIdentity().machine_key()


class TestWindowsIdentity:
    """Tests for the registry MachineGuid source."""

    def test_reads_machine_guid(self, monkeypatch):
        """Test reading MachineGuid from the 64-bit registry view."""
        registry = fake_winreg()
        monkeypatch.setitem(sys.modules, "winreg", registry)
        assert WindowsIdentity().machine_key() == MACHINE_GUID.encode("utf-8")
        root, path, _, access = registry.calls[0]
        assert root == registry.HKEY_LOCAL_MACHINE
        assert path == r"SOFTWARE\Microsoft\Cryptography"
        assert access & registry.KEY_WOW64_64KEY

    def test_registry_error_raises(self, monkeypatch):
        """Test that an unreadable registry key maps to IdentityUnavailable."""
        registry = fake_winreg(error=FileNotFoundError("no such key"))
        monkeypatch.setitem(sys.modules, "winreg", registry)
        with pytest.raises(IdentityUnavailable):
            WindowsIdentity().machine_key()

    def test_blank_guid_raises(self, monkeypatch):
        """Test that an empty MachineGuid is rejected."""
        monkeypatch.setitem(sys.modules, "winreg", fake_winreg(guid="  "))
        with pytest.raises(IdentityUnavailable):
            WindowsIdentity().machine_key()


class TestStaticIdentity:
    """Tests for the fixed identity."""

    def test_accepts_str(self):
        """Test that a str value is encoded to bytes."""
        assert StaticIdentity("host-a").machine_key() == b"host-a"

    def test_empty_raises(self):
        """Test that an empty identity is rejected."""
        with pytest.raises(IdentityUnavailable):
            StaticIdentity(b"")


class TestDefaultIdentity:
    """Tests for per-OS strategy selection."""

    @pytest.mark.parametrize("platform, expected", [
        ("linux", LinuxIdentity),
        ("darwin", MacOSIdentity),
        ("win32", WindowsIdentity),
    ])
    def test_strategy_per_platform(self, platform, expected):
        """Test the strategy chosen for each supported platform."""
        assert isinstance(default_identity(platform), expected)

    def test_unsupported_platform(self):
        """Test IdentityUnavailable on an unknown platform."""
        with pytest.raises(IdentityUnavailable):
            default_identity("plan9")
