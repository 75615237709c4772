#!/usr/bin/env python3
"""
Utility helpers shared by the discovery modules
"""

import json
import subprocess
from typing import Any, Dict, List, Optional

from .errors import DiscoveryError


def capture_output(args: List[str], timeout: int = 30) -> Optional[str]:
    """Run a read-only command and return its stripped stdout, or None on any failure"""
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
        return None

    output = result.stdout.strip()
    return output or None


def parse_blockdevices(raw: Optional[str], source: str) -> List[Dict[str, Any]]:
    """Decode lsblk -J output and return its blockdevices list"""
    if raw is None or not raw.strip():
        raise DiscoveryError(f"{source}: no lsblk output available")

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DiscoveryError(f"{source}: invalid lsblk JSON ({e})") from e

    if not isinstance(decoded, dict) or not isinstance(decoded.get("blockdevices"), list):
        raise DiscoveryError(f"{source}: lsblk JSON has no blockdevices list")

    return [dev for dev in decoded["blockdevices"] if isinstance(dev, dict)]


def first_line(output: Optional[str]) -> Optional[str]:
    if not output:
        return None
    for line in output.splitlines():
        line = line.strip()
        if line:
            return line
    return None


def format_bytes(bytes_value: float) -> str:
    """Format bytes into human-readable format"""
    for unit in ['B', 'KiB', 'MiB', 'GiB', 'TiB']:
        if bytes_value < 1024.0:
            return f"{bytes_value:.1f} {unit}"
        bytes_value /= 1024.0
    return f"{bytes_value:.1f} PiB"
