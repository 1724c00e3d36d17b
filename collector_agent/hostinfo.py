"""Information about the host operating system and network identity."""

from __future__ import annotations

import functools
import ipaddress
import platform as _platform
import re
import socket
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import psutil

UNKNOWN = "unknown"

_IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_LINUX_NAMES = {
    "centos": "CentOS",
    "rhel": "RedHat Enterprise Linux",
    "ubuntu": "Ubuntu",
    "suse": "SLES Enterprise Linux",
    "sles": "SLES Enterprise Linux",
    "coreos": "CoreOS",
    "linuxmint": "Linux Mint",
}


@dataclass(frozen=True)
class HostInfo:
    """The parts of the host description the agent reports."""

    hostname: str = ""
    platform: str = ""
    platform_version: str = ""


@dataclass(frozen=True)
class NetInterface:
    """A network interface: its hardware address and assigned addresses."""

    name: str
    hardware_addr: str = ""
    addrs: tuple[str, ...] = ()


def _current_os() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def _platform_details(os_name: str) -> tuple[str, str]:
    if os_name == "linux":
        try:
            release = _platform.freedesktop_os_release()
        except OSError:
            return "", ""
        return release.get("ID", ""), release.get("VERSION_ID", "")
    if os_name == "darwin":
        return "darwin", _platform.mac_ver()[0]
    if os_name == "windows":
        edition = _platform.win32_edition() or ""
        return (
            f"Microsoft Windows {_platform.release()} {edition}".strip(),
            _platform.version(),
        )
    return _platform.system().lower(), _platform.release()


@functools.lru_cache(maxsize=1)
def _host_info() -> HostInfo:
    platform_name, platform_version = _platform_details(_current_os())
    return HostInfo(
        hostname=socket.gethostname(),
        platform=platform_name,
        platform_version=platform_version,
    )


def hostname() -> str:
    """Return the hostname of the machine."""
    return _host_info().hostname


def name() -> str:
    """Return a human readable name of the operating system."""
    return parse_name(_host_info(), _current_os())


def parse_name(info: HostInfo | None, os_name: str) -> str:
    """Build the operating system name from host info for the given OS family."""
    if info is None:
        return UNKNOWN
    if os_name == "darwin":
        return f"macOS {parse_darwin_version(info.platform_version)}"
    if os_name == "linux":
        return f"{format_linux_name(info.platform)} {info.platform_version}"
    return info.platform


def parse_darwin_version(platform_version: str) -> str:
    """Reduce a darwin version to its major and minor parts."""
    parts = platform_version.split(".")
    if len(parts) < 2:
        return "unknown version"
    return f"{parts[0]}.{parts[1]}"


def format_linux_name(platform: str) -> str:
    """Return the display name of a linux distribution."""
    known = _LINUX_NAMES.get(platform.lower())
    if known is not None:
        return known
    return re.sub(r"\b(\w)", lambda m: m.group(1).upper(), platform)


def _system_interfaces() -> list[NetInterface]:
    interfaces = []
    for iface_name, addresses in psutil.net_if_addrs().items():
        hardware_addr = ""
        ips = []
        for addr in addresses:
            if addr.family == psutil.AF_LINK:
                hardware_addr = addr.address.replace("-", ":").lower()
            elif addr.family in (socket.AF_INET, socket.AF_INET6):
                ips.append(addr.address)
        interfaces.append(NetInterface(iface_name, hardware_addr, tuple(ips)))
    return interfaces


def mac_address() -> str:
    """Return the MAC address of the host, or "unknown"."""
    return find_mac_address(_system_interfaces)


def find_mac_address(interfaces: Callable[[], Iterable[NetInterface]]) -> str:
    """Return the hardware address of the first interface holding a usable IPv4 address."""
    try:
        found = list(interfaces())
    except OSError:
        return UNKNOWN

    for iface in found:
        if not iface.hardware_addr:
            continue
        for addr in iface.addrs:
            if is_valid_v4_address(_parse_ip(addr.split("/", 1)[0])):
                return iface.hardware_addr
    return UNKNOWN


def _parse_ip(text: str) -> _IPAddress | None:
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def is_valid_v4_address(address: _IPAddress | str | None) -> bool:
    """Tell whether an address is IPv4, not loopback and not unspecified."""
    if isinstance(address, str):
        address = _parse_ip(address)
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return (
        isinstance(address, ipaddress.IPv4Address)
        and not address.is_loopback
        and not address.is_unspecified
    )