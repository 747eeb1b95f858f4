"""
QuantumFlow — Page layout engine.

Fits one image onto one page: uniform scale so the image fills the printable
area (page minus a fixed margin on every side) along its binding axis, then
centres it. All values are PDF points, origin at the top-left of the page.
"""

from __future__ import annotations

from dataclasses import dataclass

from quantumflow.errors import PageTooSmallError
from quantumflow.models.image import OrientationMode, PageOrientation
from quantumflow.pdf.orientation import choose_page_orientation

# (short side, long side) in points
PAPER_SIZES: dict[str, tuple[float, float]] = {
    "A3": (841.89, 1190.55),
    "A4": (595.28, 841.89),
    "A5": (419.53, 595.28),
    "LETTER": (612.0, 792.0),
    "LEGAL": (612.0, 1008.0),
}


@dataclass(frozen=True)
class Placement:
    x: float
    y: float
    width: float
    height: float

    @property
    def x1(self) -> float:
        return self.x + self.width

    @property
    def y1(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class PageGeometry:
    orientation: PageOrientation
    page_width: float
    page_height: float
    placement: Placement


def page_dimensions(paper: str, orientation: PageOrientation) -> tuple[float, float]:
    """Return (width, height) of the paper turned to the given orientation."""
    short, long = PAPER_SIZES[paper]
    if orientation == PageOrientation.LANDSCAPE:
        return long, short
    return short, long


def layout_image_on_page(
    image_width: float,
    image_height: float,
    page_width: float,
    page_height: float,
    margin: float,
) -> Placement:
    printable_w = page_width - 2 * margin
    printable_h = page_height - 2 * margin
    if printable_w <= 0 or printable_h <= 0:
        raise PageTooSmallError(page_width, page_height, margin)

    scale = min(printable_w / image_width, printable_h / image_height)
    placed_w = image_width * scale
    placed_h = image_height * scale

    return Placement(
        x=margin + (printable_w - placed_w) / 2,
        y=margin + (printable_h - placed_h) / 2,
        width=placed_w,
        height=placed_h,
    )


def compute_page_geometry(
    image_width: int,
    image_height: int,
    mode: OrientationMode,
    paper: str = "A4",
    margin: float = 10.0,
) -> PageGeometry:
    """Orientation, page size and image rectangle for one image. Never cached."""
    orientation = choose_page_orientation(image_width, image_height, mode)
    page_w, page_h = page_dimensions(paper, orientation)
    return PageGeometry(
        orientation=orientation,
        page_width=page_w,
        page_height=page_h,
        placement=layout_image_on_page(image_width, image_height, page_w, page_h, margin),
    )
