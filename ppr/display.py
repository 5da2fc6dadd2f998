"""
Display resolution: parse "WIDTHxHEIGHT" and probe the primary display through platform helpers.
Probes raise ResolutionProbeError; the orchestrator falls back to configured defaults.
"""
import logging
import re
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .errors import ResolutionProbeError

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class Resolution:
    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class ResolutionFormatError(ValueError):
    pass


def parse_resolution(text: str) -> Resolution:
    """'1920x1080' -> Resolution(1920, 1080)."""
    parts = text.strip().lower().split("x")
    if len(parts) != 2:
        raise ResolutionFormatError(f"invalid resolution format: {text} (expected WIDTHxHEIGHT)")
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError:
        raise ResolutionFormatError(f"invalid resolution: {text}") from None
    if width <= 0 or height <= 0:
        raise ResolutionFormatError(f"resolution must be positive: {text}")
    return Resolution(width, height)


def _run(argv: list[str]) -> str:
    try:
        r = subprocess.run(argv, capture_output=True, text=True, timeout=PROBE_TIMEOUT_SECONDS)
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        raise ResolutionProbeError(f"{argv[0]} unavailable") from e
    if r.returncode != 0:
        raise ResolutionProbeError(f"{argv[0]} exited with status {r.returncode}")
    return r.stdout or ""


class ResolutionProbe(ABC):
    """Returns the primary display's resolution or raises ResolutionProbeError."""

    @abstractmethod
    def primary_resolution(self) -> Resolution:
        ...


_XRANDR_MODE_RE = re.compile(r"(\d+)x(\d+)\+\d+\+\d+")


def parse_xrandr(output: str) -> Resolution:
    """Prefer the 'connected primary' output, else the first connected one with an active mode."""
    connected = [ln for ln in output.splitlines() if " connected" in ln]
    connected.sort(key=lambda ln: " connected primary" not in ln)
    for line in connected:
        m = _XRANDR_MODE_RE.search(line)
        if m:
            return Resolution(int(m.group(1)), int(m.group(2)))
    raise ResolutionProbeError("no connected display in xrandr output")


def parse_xdpyinfo(output: str) -> Resolution:
    m = re.search(r"dimensions:\s+(\d+)x(\d+)", output)
    if not m:
        raise ResolutionProbeError("no dimensions in xdpyinfo output")
    return Resolution(int(m.group(1)), int(m.group(2)))


def parse_system_profiler(output: str) -> Resolution:
    m = re.search(r"Resolution:\s+(\d+)\s*x\s*(\d+)", output)
    if not m:
        raise ResolutionProbeError("no resolution in system_profiler output")
    return Resolution(int(m.group(1)), int(m.group(2)))


def parse_wmic(output: str) -> Resolution:
    w = re.search(r"CurrentHorizontalResolution=(\d+)", output)
    h = re.search(r"CurrentVerticalResolution=(\d+)", output)
    if not w or not h or int(w.group(1)) <= 0 or int(h.group(1)) <= 0:
        raise ResolutionProbeError("no resolution in wmic output")
    return Resolution(int(w.group(1)), int(h.group(1)))


class XrandrProbe(ResolutionProbe):
    def primary_resolution(self) -> Resolution:
        return parse_xrandr(_run(["xrandr"]))


class XdpyinfoProbe(ResolutionProbe):
    def primary_resolution(self) -> Resolution:
        return parse_xdpyinfo(_run(["xdpyinfo"]))


class MacOSProbe(ResolutionProbe):
    def primary_resolution(self) -> Resolution:
        return parse_system_profiler(_run(["system_profiler", "SPDisplaysDataType"]))


class WindowsProbe(ResolutionProbe):
    def primary_resolution(self) -> Resolution:
        return parse_wmic(_run([
            "wmic", "path", "Win32_VideoController", "get",
            "CurrentHorizontalResolution,CurrentVerticalResolution", "/format:value",
        ]))


class ChainProbe(ResolutionProbe):
    """Try probes in order; the first success wins."""

    def __init__(self, probes: list[ResolutionProbe]):
        self.probes = probes

    def primary_resolution(self) -> Resolution:
        errors: list[str] = []
        for probe in self.probes:
            try:
                return probe.primary_resolution()
            except ResolutionProbeError as e:
                logger.debug("%s failed: %s", type(probe).__name__, e)
                errors.append(str(e))
        raise ResolutionProbeError("could not detect resolution: " + "; ".join(errors or ["no probes"]))


def default_probe(platform: str | None = None) -> ResolutionProbe:
    platform = platform or sys.platform
    if platform == "darwin":
        return MacOSProbe()
    if platform.startswith("win"):
        return WindowsProbe()
    return ChainProbe([XrandrProbe(), XdpyinfoProbe()])
