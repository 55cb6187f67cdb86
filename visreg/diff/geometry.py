"""Bounding-box parsing and crop-region arithmetic."""

from __future__ import annotations

import re

from visreg.models.comparison import BoundingBox, CropRegion

# ImageMagick prints "%X"/"%Y" with their own sign, so "+%X+%Y" yields
# "1280x253++0++0" for non-negative offsets and "1280x253+-4+-2" for negative ones.
_BBOX_PATTERN = re.compile(r"(\d+)x(\d+)\+?\+?(-?\d+)\+?\+?(-?\d+)")


def parse_bounding_box(text: str) -> BoundingBox | None:
    """Parse ``WxH+X+Y`` trim output. Returns None if the text doesn't match."""
    match = _BBOX_PATTERN.search(text or "")
    if not match:
        return None
    width, height, x, y = (int(g) for g in match.groups())
    return BoundingBox(width=width, height=height, x=x, y=y)


def compute_crop_region(
    bbox: BoundingBox,
    image_width: int,
    image_height: int,
    padding: int,
    min_height: int,
) -> CropRegion:
    """Compute a full-width crop around the changed rows.

    The box is padded above and below, floored to ``min_height`` and then
    kept inside the image: 0 <= y and y + height <= image_height. An image
    shorter than ``min_height`` is returned whole.
    """
    height = max(bbox.height + padding * 2, min_height)
    height = min(height, image_height)
    y = max(0, bbox.y - padding)
    if y + height > image_height:
        y = max(0, image_height - height)
    return CropRegion(width=image_width, height=height, x=0, y=y)
