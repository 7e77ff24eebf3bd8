"""
Spawn point extraction from authored zone scenes.

Marker nodes named with "SpawnPoint" (or containing "spawn_point" in any
case) become player spawn locations.  Every zone ends up with exactly one
default spawn.
"""

import logging
from collections import namedtuple

log = logging.getLogger(__name__)

DEFAULT_SPAWN_NAME = "default"
DEFAULT_SPAWN_POSITION = (0.0, 1.0, 0.0)

_MARKER = "SpawnPoint"


class SpawnPoint(namedtuple('SpawnPoint', ['name', 'position', 'is_default'])):
    __slots__ = ()

    def to_dict(self):
        x, y, z = self.position
        return {
            "name": self.name,
            "x": float(x),
            "y": float(y),
            "z": float(z),
            "is_default": bool(self.is_default),
        }


def is_spawn_marker(name):
    return _MARKER in name or "spawn_point" in name.lower()


def spawn_name(node_name):
    """Strip the marker: 'Market SpawnPoint' -> 'Market', 'SpawnPoint' -> 'default'."""
    name = node_name.replace(_MARKER, "").strip()
    return name or DEFAULT_SPAWN_NAME


def ensure_single_default(points):
    """
    Return a copy of *points* with exactly one default entry.

    The first default wins; without any default the first point is
    promoted.  An empty list yields the synthetic origin spawn.
    """
    if not points:
        return [SpawnPoint(DEFAULT_SPAWN_NAME, DEFAULT_SPAWN_POSITION, True)]

    default_index = next(
        (i for i, p in enumerate(points) if p.is_default), 0)
    return [p._replace(is_default=(i == default_index))
            for i, p in enumerate(points)]


def extract_spawn_points(scene_root):
    """
    Collect spawn markers from *scene_root* in traversal order.

    Returns:
        list[SpawnPoint] with exactly one ``is_default`` entry.
    """
    points = []
    for node in scene_root.walk():
        if not is_spawn_marker(node.name):
            continue
        position = tuple(float(v) for v in node.world_position())
        points.append(SpawnPoint(spawn_name(node.name), position,
                                 node.name == _MARKER))
        log.debug("Spawn marker '%s' at (%.2f, %.2f, %.2f)",
                  node.name, position[0], position[1], position[2])

    if not points:
        log.info("No spawn markers found, using default spawn at %s",
                 DEFAULT_SPAWN_POSITION)
    return ensure_single_default(points)
