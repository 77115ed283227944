"""
Rendering helpers for thermal receipts.

- Fixed-width table layout for text-mode printing
- Image loading (local path or http(s) URL) and fitting to the printable width
- PDF rasterization into Pillow images, one per page

Pillow images returned here are grayscale ('L'), ready for python-escpos'
``image()``.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from collections.abc import Sequence
from io import BytesIO
from typing import Iterator, List, Optional, Union

import requests
from PIL import Image

from thermal_printer.core.config import get_media_path

logger = logging.getLogger(__name__)

DOTS_PER_MM = 8  # 203 dpi print heads
IMAGE_EXTS: List[str] = [".png", ".jpg", ".jpeg", ".gif", ".bmp"]
DOWNLOAD_TIMEOUT = 10


def mm_to_dots(mm: Union[int, float]) -> int:
    return int(round(float(mm) * DOTS_PER_MM))


def is_supported_image(filename: str) -> bool:
    """
    True if the filename has a supported image extension.
    """
    ext = os.path.splitext(filename.split("?", 1)[0])[1].lower()
    return ext in IMAGE_EXTS


def _is_url(source: str) -> bool:
    return source.startswith("http://") or source.startswith("https://")


def resolve_local(path: str, media_dir: Optional[str] = None) -> str:
    """
    Relative paths that do not exist from the working directory are looked
    up in the media directory (THERMALPRINTER_MEDIA_PATH).
    """
    if os.path.isabs(path) or os.path.exists(path):
        return path
    return os.path.join(media_dir or get_media_path(), path)


# ----- Tables ---------------------------------------------------------------


def _column_widths(count: int, width: int, separator: str, requested: Optional[Sequence[int]] = None) -> List[int]:
    """
    Character widths per column. Requested widths are honored when they fit;
    otherwise the line is split evenly and the last column takes the rest.
    """
    usable = max(count, width - len(separator) * (count - 1))
    if requested and len(requested) == count and all(int(w) > 0 for w in requested):
        widths = [int(w) for w in requested]
        if sum(widths) <= usable:
            return widths
        logger.warning("Requested column widths %s exceed line width %d; splitting evenly", widths, usable)
    base = usable // count
    widths = [base] * count
    widths[-1] += usable - base * count
    return widths


def _fit(cell: str, width: int, align: str) -> str:
    text = str(cell)[:width]
    if align == "right":
        return text.rjust(width)
    if align == "center":
        return text.center(width)
    return text.ljust(width)


def format_table(
    headers: Optional[Sequence[str]],
    rows: Sequence[Sequence[str]],
    width: int = 48,
    column_widths: Optional[Sequence[int]] = None,
    alignments: Optional[Sequence[str]] = None,
    separator: str = " ",
) -> List[str]:
    """
    Lay out a table as fixed-width text lines (headers first when given).
    Cells longer than their column are truncated; missing cells are blank.
    """
    count = max([len(headers or [])] + [len(r) for r in rows] + [0])
    if count == 0:
        return []
    widths = _column_widths(count, width, separator, column_widths)
    aligns = list(alignments or [])
    aligns += ["left"] * (count - len(aligns))

    def line(cells: Sequence[str]) -> str:
        padded = list(cells) + [""] * (count - len(cells))
        return separator.join(_fit(c, w, a) for c, w, a in zip(padded, widths, aligns)).rstrip()

    lines = []
    if headers:
        lines.append(line(headers))
    lines.extend(line(r) for r in rows)
    return lines


# ----- Images ---------------------------------------------------------------


def load_image(source: str, timeout: float = DOWNLOAD_TIMEOUT) -> Image.Image:
    """
    Open an image from a local path or download it from an http(s) URL.

    Raises:
        FileNotFoundError for missing local files.
        ValueError for unsupported extensions.
        requests.RequestException on download failures.
    """
    if _is_url(source):
        logger.info("Downloading image %s", source)
        resp = requests.get(source, timeout=timeout)
        resp.raise_for_status()
        return Image.open(BytesIO(resp.content))
    source = resolve_local(source)
    if not is_supported_image(source):
        exts = ", ".join(IMAGE_EXTS)
        raise ValueError(f"Unsupported image type. Use one of: {exts}")
    if not os.path.isfile(source):
        raise FileNotFoundError(f"Image not found: {source}")
    return Image.open(source)


def prepare_image(img: Image.Image, max_width: int) -> Image.Image:
    """
    Flatten transparency onto white, convert to grayscale and scale down to
    ``max_width`` dots keeping the aspect ratio.
    """
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        background.alpha_composite(rgba)
        img = background
    out = img.convert("L")
    if max_width > 0 and out.width > max_width:
        height = max(1, int(out.height * (max_width / float(out.width))))
        out = out.resize((max_width, height), Image.LANCZOS)
    return out


# ----- PDF ------------------------------------------------------------------


def _pdf_input(path: Optional[str], data: Optional[str]) -> Union[str, bytes]:
    if path:
        path = resolve_local(path)
        if not os.path.isfile(path):
            raise FileNotFoundError(f"PDF not found: {path}")
        return path
    if data:
        payload = data.split(",", 1)[1] if data.startswith("data:") else data
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("PDF value is not valid base64") from e
    raise ValueError("PDF item requires a path or base64 value")


def rasterize_pdf(
    path: Optional[str] = None,
    data: Optional[str] = None,
    max_width: int = 576,
    pages: Optional[Sequence[int]] = None,
) -> Iterator[Image.Image]:
    """
    Render PDF pages (1-based ``pages`` filter, all pages by default) to
    grayscale images exactly ``max_width`` dots wide.
    """
    import pypdfium2 as pdfium

    pdf = pdfium.PdfDocument(_pdf_input(path, data))
    try:
        wanted = [p - 1 for p in pages] if pages else range(len(pdf))
        for index in wanted:
            if index < 0 or index >= len(pdf):
                logger.warning("PDF page %d out of range (document has %d pages)", index + 1, len(pdf))
                continue
            page = pdf[index]
            try:
                scale = max_width / float(page.get_width())
                bitmap = page.render(scale=scale)
                yield prepare_image(bitmap.to_pil(), max_width)
            finally:
                page.close()
    finally:
        pdf.close()


__all__ = [
    "DOTS_PER_MM",
    "IMAGE_EXTS",
    "format_table",
    "is_supported_image",
    "load_image",
    "mm_to_dots",
    "prepare_image",
    "rasterize_pdf",
    "resolve_local",
]
