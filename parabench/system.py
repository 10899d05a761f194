from __future__ import annotations

import logging
import os
import platform
import subprocess
from pathlib import Path
from typing import Any

LOGGER = logging.getLogger("parabench.system")

DEFAULT_CORE_COUNT = 1


def detect_core_count() -> int:
    """Logical cores usable by this process, or ``DEFAULT_CORE_COUNT``."""
    if hasattr(os, "sched_getaffinity"):
        try:
            cores = len(os.sched_getaffinity(0))
            if cores > 0:
                return cores
        except OSError:
            pass
    cores = os.cpu_count()
    if cores:
        return cores
    LOGGER.warning("Unable to detect the core count; assuming %d", DEFAULT_CORE_COUNT)
    return DEFAULT_CORE_COUNT


def detect_cpu_model() -> str | None:
    system = platform.system()
    try:
        if system == "Linux":
            cpuinfo = Path("/proc/cpuinfo")
            if cpuinfo.exists():
                for line in cpuinfo.read_text(encoding="utf-8", errors="ignore").splitlines():
                    if line.lower().startswith("model name"):
                        return line.split(":", 1)[1].strip()
        elif system == "Darwin":
            out = subprocess.check_output(
                ["sysctl", "-n", "machdep.cpu.brand_string"],
                stderr=subprocess.DEVNULL,
                text=True,
            ).strip()
            if out:
                return out
        elif system == "Windows":
            value = os.environ.get("PROCESSOR_IDENTIFIER")
            if value:
                return value
    except (OSError, subprocess.SubprocessError):
        LOGGER.debug("CPU model lookup failed", exc_info=True)

    for value in (platform.processor(), platform.machine()):
        if value:
            return value
    return None


def system_identity() -> dict[str, Any]:
    """Describe the host for report headers and result manifests."""
    info: dict[str, Any] = {
        "cpu_model": detect_cpu_model(),
        "cores": detect_core_count(),
        "os": platform.platform(aliased=True),
        "python": platform.python_version(),
    }
    return info


__all__ = [
    "DEFAULT_CORE_COUNT",
    "detect_core_count",
    "detect_cpu_model",
    "system_identity",
]
