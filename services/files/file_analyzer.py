"""Technical analysis of uploaded design files.

Raster images are read with Pillow, PDFs with pypdf. Physical size is
derived from pixel size and DPI (72 when the file does not declare one) and
reported in meters, rounded to two decimals.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Tuple

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from models.catalog_models import FileAnalysis

LOGGER = logging.getLogger(__name__)

DEFAULT_DPI = 72.0
METERS_PER_INCH = 0.0254
CMYK_NOTE = (
    " (Se recomienda encarecidamente usar CMYK para evitar diferencias de color entre lo que "
    "se ve en el monitor y lo que realmente se imprime)"
)


class FileAnalysisError(RuntimeError):
    """Raised when an uploaded file cannot be analyzed."""


def physical_dimensions(width_px: float, height_px: float, dpi: float) -> Tuple[float, float]:
    """Convert pixels at `dpi` into meters."""
    width_m = round(width_px / dpi * METERS_PER_INCH, 2)
    height_m = round(height_px / dpi * METERS_PER_INCH, 2)
    return width_m, height_m


def human_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    size = float(num_bytes)
    for unit in ("KB", "MB"):
        size /= 1024
        if size < 1024:
            return f"{size:.2f} {unit}"
    return f"{size / 1024:.2f} GB"


class FileAnalyzer:
    """Analyze design files for print suitability."""

    async def analyze(self, file_path: str | Path) -> FileAnalysis:
        """Analyze `file_path` off the event loop."""
        return await asyncio.to_thread(self.analyze_sync, Path(file_path))

    def analyze_sync(self, path: Path) -> FileAnalysis:
        if not path.is_file():
            raise FileAnalysisError(f"File not found: {path}")
        size = human_size(path.stat().st_size)
        if path.suffix.lower() == ".pdf":
            analysis = self._analyze_pdf(path)
        else:
            analysis = self._analyze_image(path)
        analysis.file_size = size
        LOGGER.info(
            "Analyzed %s: %sx%s m, %s m², %s",
            path.name,
            analysis.physical_width,
            analysis.physical_height,
            analysis.area,
            analysis.color_space,
        )
        return analysis

    @staticmethod
    def _analyze_image(path: Path) -> FileAnalysis:
        try:
            with Image.open(path) as image:
                width, height = image.size
                mode = image.mode
                fmt = (image.format or path.suffix.lstrip(".")).lower()
                dpi_info = image.info.get("dpi")
        except (UnidentifiedImageError, OSError) as exc:
            raise FileAnalysisError(f"Could not read image {path.name}") from exc

        dpi = float(dpi_info[0]) if dpi_info and dpi_info[0] else DEFAULT_DPI
        physical_width, physical_height = physical_dimensions(width, height, dpi)
        color_space = "CMYK" if mode == "CMYK" else f"{mode}{CMYK_NOTE}"
        return FileAnalysis(
            format=fmt,
            width=width,
            height=height,
            dpi=round(dpi, 2),
            color_space=color_space,
            physical_width=physical_width,
            physical_height=physical_height,
            area=round(physical_width * physical_height, 2),
        )

    @staticmethod
    def _analyze_pdf(path: Path) -> FileAnalysis:
        try:
            reader = PdfReader(str(path))
            pages = len(reader.pages)
            if not pages:
                raise FileAnalysisError(f"PDF {path.name} has no pages")
            box = reader.pages[0].mediabox
            width, height = float(box.width), float(box.height)
        except (PdfReadError, OSError) as exc:
            raise FileAnalysisError(f"Could not read PDF {path.name}") from exc

        # PDF user space is 1/72 inch.
        physical_width, physical_height = physical_dimensions(width, height, DEFAULT_DPI)
        return FileAnalysis(
            format="pdf",
            width=round(width),
            height=round(height),
            dpi=DEFAULT_DPI,
            physical_width=physical_width,
            physical_height=physical_height,
            area=round(physical_width * physical_height, 2),
            pages=pages,
        )
