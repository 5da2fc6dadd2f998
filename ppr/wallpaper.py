"""
Wallpaper setters: one abstract method, one implementation per desktop.
Platform selection happens here only (default_setter); the pipeline never branches on platform.
"""
import logging
import os
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import WallpaperInstallError

logger = logging.getLogger(__name__)

SETTER_TIMEOUT_SECONDS = 30


def _run(argv: list[str], *, check: bool = True) -> subprocess.CompletedProcess:
    try:
        r = subprocess.run(argv, capture_output=True, text=True, timeout=SETTER_TIMEOUT_SECONDS)
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        raise WallpaperInstallError(f"{argv[0]} failed to run") from e
    if check and r.returncode != 0:
        detail = (r.stderr or r.stdout or "").strip()
        raise WallpaperInstallError(f"{argv[0]} exited with status {r.returncode}: {detail}")
    return r


class WallpaperSetter(ABC):
    """Installs an image (absolute path) as the desktop background."""

    @abstractmethod
    def set_wallpaper(self, image_path: Path) -> None:
        ...


class GnomeSetter(WallpaperSetter):
    def set_wallpaper(self, image_path: Path) -> None:
        uri = Path(image_path).resolve().as_uri()
        _run(["gsettings", "set", "org.gnome.desktop.background", "picture-uri", uri])
        # Dark-style key only exists on newer GNOME; failure is not an error.
        _run(["gsettings", "set", "org.gnome.desktop.background", "picture-uri-dark", uri], check=False)


class KDESetter(WallpaperSetter):
    SCRIPT = (
        "var allDesktops = desktops();"
        "for (i=0;i<allDesktops.length;i++) {{"
        "d = allDesktops[i];"
        'd.wallpaperPlugin = "org.kde.image";'
        'd.currentConfigGroup = Array("Wallpaper", "org.kde.image", "General");'
        'd.writeConfig("Image", "file://{path}");'
        "}}"
    )

    def set_wallpaper(self, image_path: Path) -> None:
        script = self.SCRIPT.format(path=Path(image_path).resolve())
        _run(["qdbus", "org.kde.plasmashell", "/PlasmaShell", "org.kde.PlasmaShell.evaluateScript", script])


class XfceSetter(WallpaperSetter):
    PROPERTY = "/backdrop/screen0/monitor0/workspace0/last-image"

    def set_wallpaper(self, image_path: Path) -> None:
        _run(["xfconf-query", "-c", "xfce4-desktop", "-p", self.PROPERTY, "-s", str(Path(image_path).resolve())])


class CommandSetter(WallpaperSetter):
    """Runs a helper such as feh. argv may contain '{path}'."""

    def __init__(self, argv: list[str], *, background: bool = False):
        self.argv = argv
        self.background = background

    def available(self) -> bool:
        return shutil.which(self.argv[0]) is not None

    def set_wallpaper(self, image_path: Path) -> None:
        argv = [a.format(path=Path(image_path).resolve()) for a in self.argv]
        if not self.background:
            _run(argv)
            return
        # swaybg keeps running to hold the background.
        try:
            subprocess.Popen(argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, start_new_session=True)
        except OSError as e:
            raise WallpaperInstallError(f"{argv[0]} failed to start") from e


class MacOSSetter(WallpaperSetter):
    """The path is passed as a script argument (item 1 of argv), never spliced into the source."""

    SYSTEM_EVENTS_SCRIPT = (
        "on run argv\n"
        '  tell application "System Events"\n'
        "    tell every desktop\n"
        "      set picture to (item 1 of argv)\n"
        "    end tell\n"
        "  end tell\n"
        "end run"
    )
    FINDER_SCRIPT = (
        "on run argv\n"
        '  tell application "Finder" to set desktop picture to POSIX file (item 1 of argv)\n'
        "end run"
    )

    def set_wallpaper(self, image_path: Path) -> None:
        path = Path(image_path).resolve()
        if not path.is_file():
            raise WallpaperInstallError("wallpaper file not accessible", path)
        try:
            _run(["osascript", "-e", self.SYSTEM_EVENTS_SCRIPT, str(path)])
        except WallpaperInstallError as first:
            logger.debug("System Events method failed: %s", first)
            _run(["osascript", "-e", self.FINDER_SCRIPT, str(path)])


class WindowsSetter(WallpaperSetter):
    SCRIPT = (
        'Add-Type -TypeDefinition "using System; using System.Runtime.InteropServices; '
        "public class Wallpaper { [DllImport(\\\"user32.dll\\\", CharSet=CharSet.Auto)] "
        'public static extern int SystemParametersInfo(int uAction, int uParam, string lpvParam, int fuWinIni); }"; '
        '[Wallpaper]::SystemParametersInfo(20, 0, "{path}", 3)'
    )

    def set_wallpaper(self, image_path: Path) -> None:
        script = self.SCRIPT.replace("{path}", str(Path(image_path).resolve()))
        _run(["powershell", "-NoProfile", "-Command", script])


class ChainSetter(WallpaperSetter):
    """Try setters in order until one succeeds."""

    def __init__(self, setters: list[WallpaperSetter]):
        self.setters = setters

    def set_wallpaper(self, image_path: Path) -> None:
        errors: list[str] = []
        for setter in self.setters:
            if isinstance(setter, CommandSetter) and not setter.available():
                continue
            try:
                setter.set_wallpaper(image_path)
                return
            except WallpaperInstallError as e:
                errors.append(str(e))
        raise WallpaperInstallError("no suitable wallpaper setter found" + (": " + "; ".join(errors) if errors else ""))


def detect_desktop() -> str:
    """Best-effort desktop environment name: gnome, kde, xfce, sway, i3 or generic."""
    desktop = (os.environ.get("XDG_CURRENT_DESKTOP") or os.environ.get("DESKTOP_SESSION") or "").lower()
    for name in ("gnome", "kde", "xfce", "sway", "i3"):
        if name in desktop:
            return name
    if "plasma" in desktop:
        return "kde"
    if shutil.which("gnome-session"):
        return "gnome"
    if shutil.which("plasmashell") or shutil.which("kwin"):
        return "kde"
    if shutil.which("xfce4-session"):
        return "xfce"
    if shutil.which("sway"):
        return "sway"
    if shutil.which("i3"):
        return "i3"
    return "generic"


def _generic_commands() -> list[WallpaperSetter]:
    return [
        CommandSetter(["feh", "--bg-scale", "{path}"]),
        CommandSetter(["nitrogen", "--set-scaled", "{path}"]),
        CommandSetter(["pcmanfm", "--set-wallpaper", "{path}"]),
    ]


def default_setter(platform: str | None = None, desktop: str | None = None) -> WallpaperSetter:
    platform = platform or sys.platform
    if platform == "darwin":
        return MacOSSetter()
    if platform.startswith("win"):
        return WindowsSetter()
    desktop = desktop or detect_desktop()
    if desktop == "gnome":
        return GnomeSetter()
    if desktop == "kde":
        return KDESetter()
    if desktop == "xfce":
        return XfceSetter()
    if desktop in ("i3", "sway"):
        return ChainSetter([
            CommandSetter(["feh", "--bg-scale", "{path}"]),
            CommandSetter(["swaybg", "-i", "{path}", "-m", "fill"], background=True),
        ])
    return ChainSetter(_generic_commands())
