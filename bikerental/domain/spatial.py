"""
Nearby-bicycle search
=====================

1. **Spatial Binning** -- every located bicycle stores the H3 cell of its
   position (resolution 7 by default, ~1.2 km edge).
2. **Candidate Ring** -- a search of radius *r* around a point covers the
   query cell plus ``k`` rings of neighbours, ``k = ceil(r / edge) + 1``.
   The repository fetches bicycles whose cell is in that disk.
3. **Exact Filter** -- candidates are filtered and ordered by Haversine
   distance.

Complexity
----------
Let k = ring count, n = candidates returned by the cell lookup.

* Disk generation: O(k^2) cells
* Filter + sort:   O(n log n)
"""

from __future__ import annotations

import math

import h3

from .distance import haversine_m


def location_cell(lat: float, lng: float, resolution: int = 7) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def search_cells(
    lat: float, lng: float, radius_m: float, resolution: int = 7
) -> set[str]:
    """All H3 cells that may contain a point within *radius_m* of the origin."""
    edge_m = h3.average_hexagon_edge_length(resolution, unit="m")
    k = math.ceil(radius_m / edge_m) + 1
    return set(h3.grid_disk(location_cell(lat, lng, resolution), k))


def within_radius(
    origin: tuple[float, float],
    points: list[tuple[object, float, float]],
    radius_m: float,
) -> list[tuple[object, float]]:
    """
    Keep ``(item, lat, lng)`` entries inside *radius_m* of *origin*.

    Returns ``(item, distance_m)`` pairs, nearest first.
    """
    hits = []
    for item, lat, lng in points:
        d = haversine_m(origin[0], origin[1], lat, lng)
        if d <= radius_m:
            hits.append((item, d))
    hits.sort(key=lambda pair: pair[1])
    return hits
