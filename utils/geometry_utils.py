"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

Geometry utilities for detected scalp regions
"""

from typing import Iterable, Optional, Sequence

from api.schemas.analysis import BoundingBox, Point, Prediction


def polygon_area(points: Sequence[Point]) -> float:
    """
    Area of a simple polygon using the Shoelace formula.
    Winding order does not matter. Self-intersecting polygons are not supported.
    """
    n = len(points)
    if n < 3:
        return 0.0

    total = 0.0
    for i in range(n):
        current = points[i]
        following = points[(i + 1) % n]
        total += current.x * following.y - following.x * current.y

    return abs(total) / 2


def box_area(width: float, height: float) -> float:
    """Area of an axis-aligned box, negative extents count as zero."""
    return max(width, 0.0) * max(height, 0.0)


def union_bounding_box(
    polygons: Iterable[Sequence[Point]] = (),
    boxes: Iterable[Prediction] = (),
) -> Optional[BoundingBox]:
    """
    Center-based box covering every polygon vertex and every box corner.
    Boxes are center-based predictions. Returns None for empty input.
    """
    xs = []
    ys = []

    for polygon in polygons:
        for point in polygon:
            xs.append(point.x)
            ys.append(point.y)

    for box in boxes:
        half_width = max(box.width, 0.0) / 2
        half_height = max(box.height, 0.0) / 2
        xs.extend([box.center.x - half_width, box.center.x + half_width])
        ys.extend([box.center.y - half_height, box.center.y + half_height])

    if not xs:
        return None

    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)

    return BoundingBox(
        x=(min_x + max_x) / 2,
        y=(min_y + max_y) / 2,
        width=max_x - min_x,
        height=max_y - min_y,
    )
