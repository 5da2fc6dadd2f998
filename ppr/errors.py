"""
Error kinds raised by the palette pipeline. Components raise; the orchestrator
and the CLI decide whether an error is fatal or only worth a warning.
"""
from pathlib import Path


class PPRError(Exception):
    """Base error. Carries the file (if any) that produced it so messages read as a context chain."""
    def __init__(self, message: str, path: Path | str | None = None):
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        text = self.message
        if self.path is not None:
            text = f"{self.path}: {text}"
        cause = self.__cause__
        if cause is not None and not isinstance(cause, PPRError):
            text = f"{text} ({cause})"
        elif cause is not None:
            text = f"{text}: {cause}"
        return text


class NotFoundError(PPRError):
    """A palette, template or directory does not exist."""


class PaletteNotFoundError(NotFoundError):
    def __init__(self, name: str, path: Path | str | None = None):
        super().__init__(f"palette not found: {name}", path)
        self.name = name


class TemplateNotFoundError(NotFoundError):
    pass


class MalformedPaletteError(PPRError):
    """Palette file failed schema validation. The store skips such files."""


class MalformedTemplateError(PPRError):
    """Bound output is not an SVG document."""


class UnresolvedPlaceholderError(PPRError):
    """Placeholders left after substitution (keys the palette does not define)."""
    def __init__(self, keys: list[str], path: Path | str | None = None):
        super().__init__(f"unresolved placeholders: {', '.join(keys)}", path)
        self.keys = list(keys)


class MissingDimensionsError(PPRError):
    """Root <svg> element has no integer width/height."""


class RenderError(PPRError):
    """Rasterizing or encoding the bound document failed."""


class SynthesisError(PPRError):
    """A palette could not be synthesized (needs exactly 16 colors)."""
    def __init__(self, message: str, colors: list[str] | None = None, path: Path | str | None = None):
        self.colors = list(colors or [])
        if self.colors:
            message = f"{message}; found: {', '.join(self.colors)}"
        super().__init__(message, path)


class MappingError(PPRError):
    """Invalid color=placeholder mapping."""


class ConversionError(PPRError):
    """Turning an SVG into a template failed."""


class ResolutionProbeError(PPRError):
    """Display resolution could not be detected."""


class WallpaperInstallError(PPRError):
    """The platform helper could not install the wallpaper."""


class ConfigError(PPRError):
    """Config file exists but cannot be read."""


class PersistenceError(PPRError):
    """Writing state or output to disk failed."""
