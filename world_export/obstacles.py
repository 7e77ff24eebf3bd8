"""
Obstacle extraction - 2D collision footprints from authored scenes.

Every static collision volume in a zone scene is projected onto the
horizontal (x, z) plane as either an axis-aligned box or a circle.  The
server only uses these for coarse obstacle avoidance, so rotation is
ignored for box footprints; only world scale and translation apply.

Sources:
    - StaticBody3D nodes (except ground/floor bodies): one obstacle per
      direct CollisionShape3D child.
    - CSG nodes with use_collision enabled: one obstacle each.

Projection by primitive:
    box                         -> half extents * world scale
    sphere / cylinder / capsule -> circle, radius * max(scale_x, scale_z)
    convex / concave            -> AABB of the scaled points, centred on
                                   the AABB centre offset by world position
"""

import logging
from collections import namedtuple

import numpy as np

log = logging.getLogger(__name__)

# Footprint extents outside this range are dropped by filter_and_dedupe().
MIN_OBSTACLE_SIZE = 0.2
MAX_OBSTACLE_SIZE = 100.0

STATIC_BODY = "StaticBody3D"
COLLISION_SHAPE = "CollisionShape3D"

_GROUND_MARKERS = ("ground", "floor")

# Godot defaults for CSG primitives without explicit properties
_CSG_DEFAULT_SIZE = (2.0, 2.0, 2.0)
_CSG_DEFAULT_RADIUS = 0.5
_CSG_DEFAULT_OUTER_RADIUS = 1.0


# ---------------------------------------------------------------------------
# Obstacle types
# ---------------------------------------------------------------------------

class BoxObstacle(namedtuple('BoxObstacle', [
        'center_x', 'center_z', 'half_width', 'half_depth'])):
    """Axis-aligned box footprint."""
    __slots__ = ()
    kind = "box"

    def to_dict(self):
        return {
            "type": "box",
            "center_x": float(self.center_x),
            "center_z": float(self.center_z),
            "half_width": float(self.half_width),
            "half_depth": float(self.half_depth),
        }


class CircleObstacle(namedtuple('CircleObstacle', [
        'center_x', 'center_z', 'radius'])):
    """Circular footprint (pillars, trees, round solids)."""
    __slots__ = ()
    kind = "circle"

    def to_dict(self):
        return {
            "type": "circle",
            "center_x": float(self.center_x),
            "center_z": float(self.center_z),
            "radius": float(self.radius),
        }


def obstacle_from_dict(data):
    """Inverse of to_dict(), for reading obstacles.json back."""
    kind = data.get("type")
    if kind == "box":
        return BoxObstacle(data["center_x"], data["center_z"],
                           data["half_width"], data["half_depth"])
    if kind == "circle":
        return CircleObstacle(data["center_x"], data["center_z"],
                              data["radius"])
    raise ValueError("Unknown obstacle type: {!r}".format(kind))


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def _points_footprint(points, position, scale):
    """
    Box footprint of a point cloud (convex hull points or concave faces).

    The footprint is the axis-aligned bounding box of the scaled points.
    Its centre is the AABB centre, not the vertex mean, and the box
    encloses every point.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if pts.shape[0] == 0:
        raise ValueError("shape has no points")
    pts = pts * scale
    lo = pts.min(axis=0)
    hi = pts.max(axis=0)
    center = (lo + hi) * 0.5
    half = (hi - lo) * 0.5
    return BoxObstacle(position[0] + center[0], position[2] + center[2],
                       half[0], half[2])


def project_shape(shape, position, scale):
    """
    Project one collision shape payload onto the ground plane.

    Args:
        shape: Shape dict ({"type": "box", "size": [...]}, ...).
        position: World position (x, y, z) of the owning node.
        scale: World scale (sx, sy, sz) of the owning node.

    Returns:
        BoxObstacle, CircleObstacle, or None for unsupported shape types.

    Raises:
        KeyError, TypeError, ValueError: For malformed shape payloads.
    """
    kind = shape.get("type")
    if kind == "box":
        size = shape["size"]
        return BoxObstacle(position[0], position[2],
                           abs(float(size[0])) * 0.5 * scale[0],
                           abs(float(size[2])) * 0.5 * scale[2])
    if kind in ("sphere", "cylinder", "capsule"):
        radius = abs(float(shape["radius"])) * max(scale[0], scale[2])
        return CircleObstacle(position[0], position[2], radius)
    if kind == "convex":
        return _points_footprint(shape["points"], position, scale)
    if kind == "concave":
        return _points_footprint(shape["faces"], position, scale)
    return None


def _csg_shape(node):
    """Equivalent collision shape payload for a CSG node."""
    props = node.properties
    if node.kind == "CSGBox3D":
        return {"type": "box", "size": props.get("size", _CSG_DEFAULT_SIZE)}
    if node.kind in ("CSGCylinder3D", "CSGSphere3D"):
        return {"type": "cylinder",
                "radius": props.get("radius", _CSG_DEFAULT_RADIUS)}
    if node.kind == "CSGTorus3D":
        return {"type": "cylinder",
                "radius": props.get("outer_radius", _CSG_DEFAULT_OUTER_RADIUS)}
    if node.kind in ("CSGMesh3D", "CSGPolygon3D", "CSGCombiner3D") and "points" in props:
        return {"type": "convex", "points": props["points"]}
    return None


def _footprint(node, shape):
    if not isinstance(shape, dict):
        log.warning("Node '%s' has no usable shape, skipping", node.name)
        return None
    try:
        obstacle = project_shape(shape, node.world_position(), node.world_scale())
    except (KeyError, TypeError, ValueError) as e:
        log.warning("Malformed %s shape on '%s', skipping: %s",
                    shape.get("type"), node.name, e)
        return None
    if obstacle is None:
        log.warning("Unsupported shape type '%s' on '%s', skipping",
                    shape.get("type"), node.name)
    return obstacle


def _is_ground(name):
    lowered = name.lower()
    return any(marker in lowered for marker in _GROUND_MARKERS)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def extract_obstacles(scene_root):
    """
    Walk *scene_root* and collect raw (unfiltered) obstacle footprints.

    Returns:
        list of BoxObstacle / CircleObstacle in traversal order.
    """
    obstacles = []
    for node in scene_root.walk():
        if node.kind == STATIC_BODY:
            if _is_ground(node.name):
                log.debug("Skipping ground body '%s'", node.name)
                continue
            for child in node.children:
                if child.kind != COLLISION_SHAPE:
                    continue
                if child.disabled:
                    log.debug("Skipping disabled shape '%s/%s'",
                              node.name, child.name)
                    continue
                obstacle = _footprint(child, child.shape)
                if obstacle is not None:
                    obstacles.append(obstacle)
        elif node.kind.startswith("CSG") and node.use_collision:
            shape = _csg_shape(node)
            if shape is None:
                log.warning("Unsupported CSG node '%s' (%s), skipping",
                            node.name, node.kind)
                continue
            obstacle = _footprint(node, shape)
            if obstacle is not None:
                obstacles.append(obstacle)

    log.debug("Extracted %d raw obstacles", len(obstacles))
    return obstacles


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def is_valid_size(obstacle):
    """
    Size check for one footprint.

    Boxes need at least one half extent >= MIN_OBSTACLE_SIZE and both
    <= MAX_OBSTACLE_SIZE.  Circles need a radius inside the range.
    """
    if obstacle.kind == "box":
        if (obstacle.half_width > MAX_OBSTACLE_SIZE or
                obstacle.half_depth > MAX_OBSTACLE_SIZE):
            return False
        if (obstacle.half_width < MIN_OBSTACLE_SIZE and
                obstacle.half_depth < MIN_OBSTACLE_SIZE):
            return False
        return True
    return MIN_OBSTACLE_SIZE <= obstacle.radius <= MAX_OBSTACLE_SIZE


def dedupe_key(obstacle):
    return (obstacle.kind,
            round(obstacle.center_x, 1),
            round(obstacle.center_z, 1))


def filter_and_dedupe(obstacles):
    """
    Drop out-of-range footprints and collapse duplicates.

    Duplicates share (kind, x rounded to 0.1, z rounded to 0.1); the first
    occurrence wins regardless of size.  Idempotent.
    """
    result = []
    seen = set()
    rejected = 0
    for obstacle in obstacles:
        if not is_valid_size(obstacle):
            rejected += 1
            continue
        key = dedupe_key(obstacle)
        if key in seen:
            continue
        seen.add(key)
        result.append(obstacle)

    log.debug("Obstacle filter: %d in, %d rejected by size, %d duplicates, "
              "%d kept", len(obstacles), rejected,
              len(obstacles) - rejected - len(result), len(result))
    return result
