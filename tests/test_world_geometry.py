"""
Tests for scene loading, obstacle extraction and spawn points.

Tests:
  Scene:       transform composition, instancing, cycles, missing files
  Obstacles:   shape projection, ground/disabled skipping, CSG, size
               filter boundaries, de-duplication
  Spawn:       marker naming and the single-default rule

Runs standalone (python tests/test_world_geometry.py) or under pytest.
"""

import os
import sys
import json
import shutil
import tempfile
import traceback

import numpy as np

# Ensure the project root is on the path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from world_export.scene import Transform, load_scene, scene_from_dict
from world_export.obstacles import (BoxObstacle, CircleObstacle,
                                    MIN_OBSTACLE_SIZE, MAX_OBSTACLE_SIZE,
                                    project_shape, extract_obstacles,
                                    is_valid_size, filter_and_dedupe,
                                    obstacle_from_dict)
from world_export.spawn_points import (SpawnPoint, extract_spawn_points,
                                       ensure_single_default, spawn_name,
                                       DEFAULT_SPAWN_POSITION)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PASSED = 0
_FAILED = 0
_ERRORS = []


def _test(name, fn):
    """Run a test function, track pass/fail."""
    global _PASSED, _FAILED
    try:
        fn()
        _PASSED += 1
        print("  PASS  {}".format(name))
    except Exception as e:
        _FAILED += 1
        _ERRORS.append((name, e))
        print("  FAIL  {} -- {}".format(name, e))
        traceback.print_exc()


def _write_json(path, data):
    with open(path, 'w') as f:
        json.dump(data, f)


def _body(name, position, shape, scale=(1, 1, 1), rotation=(0, 0, 0),
          disabled=False):
    """StaticBody3D node dict with one collision shape child."""
    return {
        "name": name,
        "type": "StaticBody3D",
        "transform": {"position": list(position), "scale": list(scale),
                      "rotation_degrees": list(rotation)},
        "children": [{
            "name": "CollisionShape3D",
            "type": "CollisionShape3D",
            "shape": shape,
            "disabled": disabled,
        }],
    }


def _marker(name, position):
    return {"name": name, "type": "Marker3D",
            "transform": {"position": list(position)}}


def _scene(*children):
    return scene_from_dict({"name": "Zone", "type": "Node3D",
                            "children": list(children)})


def _close(a, b, tol=1e-9):
    return abs(a - b) < tol


# ---------------------------------------------------------------------------
# Scene
# ---------------------------------------------------------------------------

def test_transform_composition():
    root = _scene({
        "name": "Parent",
        "transform": {"position": [10, 0, 0], "scale": [2, 2, 2]},
        "children": [{"name": "Child", "transform": {"position": [1, 0, 0]}}],
    })
    child = root.children[0].children[0]
    pos = child.world_position()
    assert np.allclose(pos, [12.0, 0.0, 0.0]), pos
    assert np.allclose(child.world_scale(), [2.0, 2.0, 2.0])
    assert child.parent is root.children[0]


def test_transform_rotation():
    root = _scene({
        "name": "Turned",
        "transform": {"rotation_degrees": [0, 90, 0]},
        "children": [{"name": "Arm", "transform": {"position": [1, 0, 0]}}],
    })
    pos = root.children[0].children[0].world_position()
    assert np.allclose(pos, [0.0, 0.0, -1.0]), pos

    t = Transform.from_components(rotation_degrees=(0, 45, 0), scale=(3, 1, 3))
    assert np.allclose(t.scale, [3.0, 1.0, 3.0])


def test_walk_is_preorder():
    root = _scene(
        {"name": "A", "children": [{"name": "A1"}, {"name": "A2"}]},
        {"name": "B"},
    )
    assert [n.name for n in root.walk()] == ["Zone", "A", "A1", "A2", "B"]


def test_free_releases_tree():
    root = _scene({"name": "A", "children": [{"name": "A1"}]})
    a = root.children[0]
    root.free()
    assert root.children == []
    assert a.children == [] and a.parent is None


def test_load_scene_with_instance():
    tmp = tempfile.mkdtemp(prefix="world_export_scene_")
    try:
        os.makedirs(os.path.join(tmp, "props"))
        _write_json(os.path.join(tmp, "props", "tree.json"),
                    _body("Tree", (0, 0, 0), {"type": "cylinder", "radius": 0.5}))
        _write_json(os.path.join(tmp, "zone.json"), {"root": {
            "name": "Zone",
            "children": [
                {"instance": "props/tree.json",
                 "transform": {"position": [5, 0, 5]}},
                {"instance": "props/tree.json", "name": "OldOak",
                 "transform": {"position": [-3, 0, 2], "scale": [2, 1, 2]}},
            ],
        }})

        root = load_scene(os.path.join(tmp, "zone.json"))
        names = [c.name for c in root.children]
        assert names == ["Tree", "OldOak"], names

        obstacles = extract_obstacles(root)
        assert obstacles == [CircleObstacle(5.0, 5.0, 0.5),
                             CircleObstacle(-3.0, 2.0, 1.0)], obstacles
    finally:
        shutil.rmtree(tmp)


def test_load_scene_failures():
    tmp = tempfile.mkdtemp(prefix="world_export_scene_")
    try:
        _write_json(os.path.join(tmp, "a.json"),
                    {"name": "A", "children": [{"instance": "b.json"}]})
        _write_json(os.path.join(tmp, "b.json"),
                    {"name": "B", "children": [{"instance": "a.json"}]})
        try:
            load_scene(os.path.join(tmp, "a.json"))
        except ValueError:
            pass
        else:
            raise AssertionError("Expected ValueError for instance cycle")

        try:
            load_scene(os.path.join(tmp, "missing.json"))
        except FileNotFoundError:
            pass
        else:
            raise AssertionError("Expected FileNotFoundError")

        with open(os.path.join(tmp, "broken.json"), 'w') as f:
            f.write("{ not json")
        try:
            load_scene(os.path.join(tmp, "broken.json"))
        except ValueError:
            pass
        else:
            raise AssertionError("Expected ValueError for malformed JSON")
    finally:
        shutil.rmtree(tmp)


def test_scene_field_types_checked():
    bad_nodes = [
        {"name": "Zone", "transform": [1, 2, 3]},
        {"name": None},
        {"name": 7},
        {"name": "Zone", "type": ["StaticBody3D"]},
        {"name": "Zone", "properties": [1, 2]},
        {"name": "Zone", "children": {"name": "Child"}},
        {"name": "Zone", "children": [{"name": "Child", "transform": "up"}]},
    ]
    for data in bad_nodes:
        try:
            scene_from_dict(data)
        except ValueError:
            pass
        else:
            raise AssertionError("Expected ValueError for {!r}".format(data))

    # Bad shape payloads load and are skipped per shape during extraction
    root = _scene(_body("Odd", (0, 0, 0), "box"))
    assert extract_obstacles(root) == []


# ---------------------------------------------------------------------------
# Obstacles
# ---------------------------------------------------------------------------

def test_box_projection_uses_world_scale():
    root = _scene(_body("Wall", (5, 0, 5), {"type": "box", "size": [4, 2, 2]},
                        scale=(2, 1, 3)))
    assert extract_obstacles(root) == [BoxObstacle(5.0, 5.0, 4.0, 3.0)]


def test_circle_projection_uses_max_horizontal_scale():
    root = _scene(_body("Pillar", (-2, 0, 7),
                        {"type": "cylinder", "radius": 1.5}, scale=(2, 5, 3)))
    obstacles = extract_obstacles(root)
    assert obstacles == [CircleObstacle(-2.0, 7.0, 4.5)], obstacles

    for kind in ("sphere", "capsule"):
        circle = project_shape({"type": kind, "radius": 1.0},
                               (0, 0, 0), (1, 1, 1))
        assert circle == CircleObstacle(0, 0, 1.0)


def test_point_cloud_projection():
    root = _scene(_body("Rock", (10, 0, 0),
                        {"type": "convex",
                         "points": [[-1, 0, -2], [3, 4, 2], [0, 1, 0]]}))
    assert extract_obstacles(root) == [BoxObstacle(11.0, 0.0, 2.0, 2.0)]

    concave = project_shape({"type": "concave",
                             "faces": [[0, 0, 0], [2, 0, 0], [2, 0, 6]]},
                            (1, 0, 1), (1, 1, 0.5))
    assert concave == BoxObstacle(2.0, 2.5, 1.0, 1.5), concave


def test_rotation_ignored_for_footprint():
    root = _scene(_body("Crate", (0, 0, 0), {"type": "box", "size": [4, 1, 2]},
                        rotation=(0, 45, 0)))
    box = extract_obstacles(root)[0]
    assert _close(box.half_width, 2.0) and _close(box.half_depth, 1.0), box


def test_skips_ground_disabled_and_unsupported():
    root = _scene(
        _body("Ground_Plane", (0, 0, 0), {"type": "box", "size": [500, 1, 500]}),
        _body("FLOOR", (0, 0, 0), {"type": "box", "size": [10, 1, 10]}),
        _body("Ghost", (1, 0, 1), {"type": "box", "size": [2, 2, 2]},
              disabled=True),
        _body("Terrain", (0, 0, 0), {"type": "heightmap"}),
        _body("Broken", (0, 0, 0), {"type": "box"}),
        _body("NoShape", (0, 0, 0), None),
        _body("Kept", (3, 0, 4), {"type": "box", "size": [2, 2, 2]}),
    )
    assert extract_obstacles(root) == [BoxObstacle(3.0, 4.0, 1.0, 1.0)]


def test_csg_nodes():
    root = _scene(
        {"name": "CsgWall", "type": "CSGBox3D", "use_collision": True,
         "transform": {"position": [1, 0, 1]},
         "properties": {"size": [2, 2, 2]}},
        {"name": "Decor", "type": "CSGBox3D", "use_collision": False,
         "properties": {"size": [2, 2, 2]}},
        {"name": "Column", "type": "CSGCylinder3D", "use_collision": True,
         "transform": {"position": [0, 0, -4]},
         "properties": {"radius": 0.7}},
        {"name": "Blob", "type": "CSGMesh3D", "use_collision": True},
    )
    obstacles = extract_obstacles(root)
    assert obstacles == [BoxObstacle(1.0, 1.0, 1.0, 1.0),
                         CircleObstacle(0.0, -4.0, 0.7)], obstacles


def test_size_filter_boundaries():
    below = MIN_OBSTACLE_SIZE - 0.01
    above = MIN_OBSTACLE_SIZE + 0.01
    assert not is_valid_size(BoxObstacle(0, 0, below, below))
    assert is_valid_size(BoxObstacle(0, 0, above, 0.0))
    assert is_valid_size(BoxObstacle(0, 0, 0.0, above))
    assert not is_valid_size(BoxObstacle(0, 0, MAX_OBSTACLE_SIZE + 1, 1.0))
    assert is_valid_size(BoxObstacle(0, 0, MAX_OBSTACLE_SIZE, MAX_OBSTACLE_SIZE))
    assert not is_valid_size(CircleObstacle(0, 0, below))
    assert is_valid_size(CircleObstacle(0, 0, MIN_OBSTACLE_SIZE))
    assert is_valid_size(CircleObstacle(0, 0, MAX_OBSTACLE_SIZE))
    assert not is_valid_size(CircleObstacle(0, 0, MAX_OBSTACLE_SIZE + 0.01))


def test_dedupe_first_wins_and_idempotent():
    obstacles = [
        BoxObstacle(1.01, 2.02, 1.0, 1.0),
        BoxObstacle(1.04, 1.98, 5.0, 5.0),     # same rounded centre
        CircleObstacle(1.01, 2.02, 1.0),       # different kind, kept
        BoxObstacle(7.0, 7.0, 0.05, 0.05),     # too small
        BoxObstacle(1.2, 2.0, 1.0, 1.0),
    ]
    once = filter_and_dedupe(obstacles)
    assert once == [BoxObstacle(1.01, 2.02, 1.0, 1.0),
                    CircleObstacle(1.01, 2.02, 1.0),
                    BoxObstacle(1.2, 2.0, 1.0, 1.0)], once
    assert filter_and_dedupe(once) == once
    assert filter_and_dedupe([]) == []


def test_obstacle_json_shape():
    box = BoxObstacle(1, 2, 3, 4).to_dict()
    assert box == {"type": "box", "center_x": 1.0, "center_z": 2.0,
                   "half_width": 3.0, "half_depth": 4.0}
    circle = CircleObstacle(1, 2, 3).to_dict()
    assert circle == {"type": "circle", "center_x": 1.0, "center_z": 2.0,
                      "radius": 3.0}
    assert obstacle_from_dict(box) == BoxObstacle(1.0, 2.0, 3.0, 4.0)
    try:
        obstacle_from_dict({"type": "polygon"})
    except ValueError:
        pass
    else:
        raise AssertionError("Expected ValueError for unknown type")


# ---------------------------------------------------------------------------
# Spawn points
# ---------------------------------------------------------------------------

def test_spawn_names():
    assert spawn_name("SpawnPoint") == "default"
    assert spawn_name("Market SpawnPoint") == "Market"
    assert spawn_name("east_spawn_point") == "east_spawn_point"


def test_spawn_points_with_default_marker():
    root = _scene(
        _marker("Market SpawnPoint", (5, 1, 5)),
        {"name": "Plaza", "transform": {"position": [10, 0, 0]},
         "children": [_marker("SpawnPoint", (1, 2, 3))]},
        _marker("east_spawn_point", (40, 1, 0)),
        _marker("Lamp", (0, 0, 0)),
    )
    points = extract_spawn_points(root)
    assert [p.name for p in points] == ["Market", "default", "east_spawn_point"]
    assert [p.is_default for p in points] == [False, True, False]
    assert points[1].position == (11.0, 2.0, 3.0)
    assert points[1].to_dict() == {"name": "default", "x": 11.0, "y": 2.0,
                                   "z": 3.0, "is_default": True}


def test_spawn_points_first_promoted():
    root = _scene(_marker("Gate SpawnPoint", (0, 1, 40)),
                  _marker("Dock SpawnPoint", (90, 1, 0)))
    points = extract_spawn_points(root)
    assert [p.is_default for p in points] == [True, False]


def test_spawn_points_single_default_when_many():
    root = _scene(
        {"name": "North", "children": [_marker("SpawnPoint", (0, 1, -50))]},
        {"name": "South", "children": [_marker("SpawnPoint", (0, 1, 50))]},
    )
    points = extract_spawn_points(root)
    assert len(points) == 2
    assert sum(1 for p in points if p.is_default) == 1
    assert points[0].is_default and points[0].position[2] == -50.0


def test_spawn_points_synthetic_default():
    points = extract_spawn_points(_scene(_marker("Lamp", (0, 0, 0))))
    assert points == [SpawnPoint("default", DEFAULT_SPAWN_POSITION, True)]
    assert ensure_single_default([]) == points


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

_TESTS = [
    ("transform composition", test_transform_composition),
    ("transform rotation", test_transform_rotation),
    ("walk is pre-order", test_walk_is_preorder),
    ("free releases tree", test_free_releases_tree),
    ("load scene with instance", test_load_scene_with_instance),
    ("load scene failures", test_load_scene_failures),
    ("scene field types checked", test_scene_field_types_checked),
    ("box projection", test_box_projection_uses_world_scale),
    ("circle projection", test_circle_projection_uses_max_horizontal_scale),
    ("point cloud projection", test_point_cloud_projection),
    ("rotation ignored", test_rotation_ignored_for_footprint),
    ("skip ground/disabled/unsupported", test_skips_ground_disabled_and_unsupported),
    ("CSG nodes", test_csg_nodes),
    ("size filter boundaries", test_size_filter_boundaries),
    ("dedupe", test_dedupe_first_wins_and_idempotent),
    ("obstacle JSON", test_obstacle_json_shape),
    ("spawn names", test_spawn_names),
    ("spawn default marker", test_spawn_points_with_default_marker),
    ("spawn first promoted", test_spawn_points_first_promoted),
    ("spawn single default", test_spawn_points_single_default_when_many),
    ("spawn synthetic default", test_spawn_points_synthetic_default),
]


def main():
    print("=" * 70)
    print("world_export Geometry Test Suite")
    print("=" * 70)

    for name, fn in _TESTS:
        _test(name, fn)

    print("\n" + "=" * 70)
    print("Results: {} passed, {} failed".format(_PASSED, _FAILED))
    if _ERRORS:
        print("\nFailures:")
        for name, err in _ERRORS:
            print("  {} -- {}".format(name, err))
    print("=" * 70)
    return 0 if _FAILED == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
