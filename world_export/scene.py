"""
Engine-independent scene description.

The authored world scenes are exported by a thin editor-side adapter into
JSON trees of typed nodes.  This module loads those trees into SceneNode
objects with composable transforms so obstacle and spawn extraction can
walk them without any engine runtime.

Scene JSON node layout:
    name           - node name
    type           - node type ("Node3D", "StaticBody3D", "CollisionShape3D",
                     "CSGBox3D", "Marker3D", ...)
    transform      - optional {position: [x,y,z], rotation_degrees: [x,y,z],
                     scale: [x,y,z]}
    shape          - CollisionShape3D payload, e.g.
                     {"type": "box", "size": [x,y,z]}
                     {"type": "sphere"|"cylinder"|"capsule", "radius": r}
                     {"type": "convex", "points": [[x,y,z], ...]}
                     {"type": "concave", "faces": [[x,y,z], ...]}
    use_collision  - CSG nodes only
    disabled       - CollisionShape3D only
    properties     - extra per-type values (CSG size, radius, points)
    instance       - path of another scene file (relative to this one);
                     its root replaces this node, keeping this node's
                     name and transform when given
    children       - list of child nodes

Fields present with the wrong JSON type (a list transform, a null name)
make the loader raise ValueError.  Shape payloads are checked later, per
shape, by the obstacle extractor.
"""

import os
import math
import logging

import numpy as np

from .intermediate_format import load_json

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------

def _rotation_matrix(rotation_degrees):
    """Basis rotation for Euler angles applied in Y, X, Z order."""
    rx, ry, rz = [math.radians(a) for a in rotation_degrees]
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    rot_x = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]], dtype=np.float64)
    rot_y = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]], dtype=np.float64)
    rot_z = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]], dtype=np.float64)
    return rot_y.dot(rot_x).dot(rot_z)


class Transform(object):
    """Affine 3D transform: 3x3 basis plus origin."""

    def __init__(self, basis=None, origin=None):
        self.basis = (np.identity(3, dtype=np.float64) if basis is None
                      else np.asarray(basis, dtype=np.float64))
        self.origin = (np.zeros(3, dtype=np.float64) if origin is None
                       else np.asarray(origin, dtype=np.float64))

    @classmethod
    def from_components(cls, position=(0.0, 0.0, 0.0),
                        rotation_degrees=(0.0, 0.0, 0.0),
                        scale=(1.0, 1.0, 1.0)):
        basis = _rotation_matrix(rotation_degrees).dot(np.diag(scale))
        return cls(basis, position)

    @classmethod
    def from_dict(cls, data):
        if not data:
            return cls()
        return cls.from_components(
            position=data.get('position', (0.0, 0.0, 0.0)),
            rotation_degrees=data.get('rotation_degrees', (0.0, 0.0, 0.0)),
            scale=data.get('scale', (1.0, 1.0, 1.0)),
        )

    def compose(self, child):
        """self * child: apply *child* first, then self."""
        return Transform(self.basis.dot(child.basis),
                         self.basis.dot(child.origin) + self.origin)

    @property
    def scale(self):
        """Per-axis scale (basis column lengths)."""
        return np.linalg.norm(self.basis, axis=0)


# ---------------------------------------------------------------------------
# SceneNode
# ---------------------------------------------------------------------------

class SceneNode(object):
    """One node of an authored scene tree."""

    def __init__(self, name, kind="Node3D", transform=None, shape=None,
                 use_collision=False, disabled=False, properties=None,
                 children=None):
        self.name = name
        self.kind = kind
        self.transform = transform if transform is not None else Transform()
        self.shape = shape
        self.use_collision = use_collision
        self.disabled = disabled
        self.properties = properties or {}
        self.parent = None
        self.children = []
        for child in children or ():
            self.add_child(child)

    def __repr__(self):
        return "SceneNode({!r}, {!r}, {} children)".format(
            self.name, self.kind, len(self.children))

    def add_child(self, child):
        child.parent = self
        self.children.append(child)
        return child

    def global_transform(self):
        if self.parent is None:
            return self.transform
        return self.parent.global_transform().compose(self.transform)

    def world_position(self):
        return self.global_transform().origin

    def world_scale(self):
        return self.global_transform().scale

    def walk(self):
        """Depth-first pre-order traversal including this node."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def free(self):
        """Detach and drop the whole subtree."""
        for child in self.children:
            child.free()
        self.children = []
        self.parent = None
        self.shape = None


# ---------------------------------------------------------------------------
# JSON adapter
# ---------------------------------------------------------------------------

_FIELD_TYPES = (
    ('name', str),
    ('type', str),
    ('instance', str),
    ('transform', dict),
    ('properties', dict),
    ('children', list),
)


def _check_fields(data):
    """Raise ValueError for node fields present with the wrong JSON type."""
    for key, expected in _FIELD_TYPES:
        value = data.get(key)
        if value is not None and not isinstance(value, expected):
            raise ValueError(
                "Scene node {!r}: field '{}' must be a {}, got {}".format(
                    data.get('name'), key, expected.__name__,
                    type(value).__name__))
    if 'name' in data and data['name'] is None:
        raise ValueError("Scene node name must be a string, got null")


def _build_node(data, base_dir, loading):
    if not isinstance(data, dict):
        raise ValueError("Scene node must be an object, got {!r}".format(data))
    _check_fields(data)

    instance = data.get('instance')
    if instance:
        node = _load_file(os.path.join(base_dir, instance), loading)
        if 'name' in data:
            node.name = data['name']
        if 'transform' in data:
            node.transform = Transform.from_dict(data['transform'])
    else:
        node = SceneNode(
            name=data.get('name', ''),
            kind=data.get('type', 'Node3D'),
            transform=Transform.from_dict(data.get('transform')),
            shape=data.get('shape'),
            use_collision=bool(data.get('use_collision', False)),
            disabled=bool(data.get('disabled', False)),
            properties=data.get('properties'),
        )

    for child in data.get('children', ()):
        node.add_child(_build_node(child, base_dir, loading))
    return node


def _load_file(path, loading):
    path = os.path.abspath(path)
    if path in loading:
        raise ValueError("Scene instance cycle through {}".format(path))
    if not os.path.isfile(path):
        raise FileNotFoundError("Scene not found: {}".format(path))

    data = load_json(path)
    root = data.get('root', data) if isinstance(data, dict) else data
    loading.append(path)
    try:
        return _build_node(root, os.path.dirname(path), loading)
    finally:
        loading.pop()


def load_scene(path):
    """
    Load a scene description file into a SceneNode tree.

    Accepts either a bare root node object or ``{"root": {...}}``.

    Raises:
        FileNotFoundError: If *path* (or an instanced scene) is missing.
        ValueError: On malformed JSON, malformed nodes or instance cycles.
    """
    root = _load_file(path, [])
    log.debug("Loaded scene %s (%d nodes)", path, sum(1 for _ in root.walk()))
    return root


def scene_from_dict(data):
    """Build a SceneNode tree from an in-memory node dict (no instancing)."""
    return _build_node(data, os.getcwd(), [])
