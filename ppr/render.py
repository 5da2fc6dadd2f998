"""
Rasterizer: bound SVG -> PNG at an exact pixel size.
The source is scaled to cover the target (aspect preserved) and the overflow is center-cropped.
"""
import io
import logging
import re
from pathlib import Path

import cairosvg
import numpy as np
from PIL import Image

from .errors import MissingDimensionsError, PersistenceError, RenderError

logger = logging.getLogger(__name__)

_SVG_OPEN_RE = re.compile(r"<svg\b[^>]*>", re.IGNORECASE | re.DOTALL)


def _dimension(tag: str, attr: str) -> int | None:
    m = re.search(rf"""\s{attr}\s*=\s*["']\s*(\d+)(?:px)?\s*["']""", tag)
    return int(m.group(1)) if m else None


def svg_dimensions(svg_text: str) -> tuple[int, int]:
    """Integer width/height declared on the root <svg> element."""
    m = _SVG_OPEN_RE.search(svg_text)
    if not m:
        raise MissingDimensionsError("no <svg> root element")
    width = _dimension(m.group(0), "width")
    height = _dimension(m.group(0), "height")
    if not width or not height:
        raise MissingDimensionsError("root <svg> needs integer width and height attributes")
    return width, height


def cover_size(src_w: int, src_h: int, target_w: int, target_h: int) -> tuple[int, int]:
    """Scratch size that covers the target on both axes; the limiting axis equals the target exactly."""
    if target_w * src_h >= target_h * src_w:
        return target_w, -(-src_h * target_w // src_w)
    return -(-src_w * target_h // src_h), target_h


def crop_box(scratch_w: int, scratch_h: int, target_w: int, target_h: int) -> tuple[int, int]:
    """Top-left offset of the centered target window inside the scratch raster."""
    return (scratch_w - target_w) // 2, (scratch_h - target_h) // 2


def _rasterize(svg_text: str, width: int, height: int) -> np.ndarray:
    try:
        png = cairosvg.svg2png(
            bytestring=svg_text.encode("utf-8"),
            output_width=width,
            output_height=height,
        )
    except Exception as e:
        raise RenderError("failed to rasterize SVG") from e
    with Image.open(io.BytesIO(png)) as im:
        return np.array(im.convert("RGBA"), dtype=np.uint8)


def center_crop(scratch: np.ndarray, target_w: int, target_h: int) -> np.ndarray:
    """Copy the centered window; samples outside the scratch raster stay transparent."""
    sh, sw = scratch.shape[:2]
    ox, oy = crop_box(sw, sh, target_w, target_h)
    out = np.zeros((target_h, target_w, 4), dtype=np.uint8)
    # Destination rows/cols whose source sample falls inside the scratch raster.
    x0, x1 = max(0, -ox), min(target_w, sw - ox)
    y0, y1 = max(0, -oy), min(target_h, sh - oy)
    if x1 > x0 and y1 > y0:
        out[y0:y1, x0:x1] = scratch[y0 + oy:y1 + oy, x0 + ox:x1 + ox]
    return out


def render(bound_text: str, target_w: int, target_h: int, out_path: Path) -> Path:
    """Render to exactly target_w x target_h and write a PNG (parents created, file overwritten)."""
    if target_w <= 0 or target_h <= 0:
        raise RenderError(f"invalid target size {target_w}x{target_h}")
    src_w, src_h = svg_dimensions(bound_text)
    scratch_w, scratch_h = cover_size(src_w, src_h, target_w, target_h)
    logger.debug(
        "Rendering %dx%d source at %dx%d, cropping to %dx%d",
        src_w, src_h, scratch_w, scratch_h, target_w, target_h,
    )
    scratch = _rasterize(bound_text, scratch_w, scratch_h)
    final = center_crop(scratch, target_w, target_h)

    out_path = Path(out_path)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        Image.fromarray(final).save(out_path, format="PNG")
    except OSError as e:
        raise PersistenceError("failed to write image", out_path) from e
    return out_path
