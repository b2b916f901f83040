"""Geo De-clustering Module

Spreads locations that share a country around that group's first member so
each marker stays clickable. Point i of a group of N sits at angle
i * 2π/N and at a random distance in [0, max_radius]. This is a visual
heuristic, not circle packing; points may still overlap.

The random source is injectable so tests can seed it.
"""

import logging
import math
import random
from typing import Dict, List, Optional, Sequence

from .config import DECLUSTER_MAX_RADIUS
from .models import Coordinate, Location

logger = logging.getLogger(__name__)


def decluster_group(
    centroid_lat: float,
    centroid_lng: float,
    count: int,
    max_radius: float = DECLUSTER_MAX_RADIUS,
    rng: Optional[random.Random] = None,
) -> List[Coordinate]:
    """Return ``count`` coordinates distributed around the centroid.

    Raises:
        ValueError: If ``count`` or ``max_radius`` is negative.
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    if max_radius < 0:
        raise ValueError(f"max_radius must be non-negative, got {max_radius}")
    if count == 0:
        return []

    rng = rng or random.Random()
    angle_step = (2 * math.pi) / count

    coords: List[Coordinate] = []
    for i in range(count):
        angle = i * angle_step
        distance = rng.random() * max_radius
        coords.append(
            Coordinate(
                lat=centroid_lat + distance * math.cos(angle),
                lng=centroid_lng + distance * math.sin(angle),
            )
        )
    return coords


def group_by_country(locations: Sequence[Location]) -> Dict[str, List[Location]]:
    """Group locations by exact country value, keeping first-seen group order."""
    groups: Dict[str, List[Location]] = {}
    for location in locations:
        groups.setdefault(location.country, []).append(location)
    return groups


def decluster_all(
    locations: Sequence[Location],
    max_radius: float = DECLUSTER_MAX_RADIUS,
    rng: Optional[random.Random] = None,
) -> List[Location]:
    """Return new Locations with de-clustered coordinates.

    Output is grouped by country (groups in first-seen order, members in
    input order). Input locations are left untouched.

    Raises:
        TypeError: If ``locations`` is None.
    """
    if locations is None:
        raise TypeError("decluster_all() requires a list of locations, got None")

    rng = rng or random.Random()
    groups = group_by_country(locations)

    placed: List[Location] = []
    for group in groups.values():
        central = group[0]
        coords = decluster_group(central.latitude, central.longitude, len(group), max_radius, rng)
        for item, coord in zip(group, coords):
            placed.append(item.model_copy(update={"latitude": coord.lat, "longitude": coord.lng}))

    logger.debug("De-clustered %d locations in %d country groups", len(placed), len(groups))
    return placed
