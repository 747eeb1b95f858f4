"""
QuantumFlow — Page orientation policy.

AUTO follows the image: wider than tall gets a landscape page, everything
else (including squares) stays portrait. The forced modes ignore the image.
"""

from __future__ import annotations

from quantumflow.models.image import OrientationMode, PageOrientation


def choose_page_orientation(
    image_width: int, image_height: int, mode: OrientationMode
) -> PageOrientation:
    if mode == OrientationMode.PORTRAIT:
        return PageOrientation.PORTRAIT
    if mode == OrientationMode.LANDSCAPE:
        return PageOrientation.LANDSCAPE
    if image_width > image_height:
        return PageOrientation.LANDSCAPE
    return PageOrientation.PORTRAIT
