"""
World Export - Offline terrain and world-data export for the MMO server.

Synthesizes deterministic per-empire terrain, bakes it into region tiles
and sampled heightmaps, and converts authored zone scenes into the
obstacle and spawn-point files the authoritative server loads at startup.

Typical use:

    from world_export import export_world

    summary = export_world("zones.json", output_dir="server/data",
                           scenes_root="client/scenes")
"""

from .empire_profiles import (EmpireProfile, EMPIRES, DEFAULT_ZONES,
                              resolve_empire)
from .height_profile import (SimplexNoise, HeightProfile, smoothstep,
                             get_height_profile, height)
from .region_tiles import (RegionTile, WorldBounds, TileDataset,
                           parse_tile_name, format_tile_name, locate_tiles,
                           compute_world_bounds, write_region_tiles)
from .heightmap import (HeightmapAsset, choose_resolution, sample_heightmap,
                        export_heightmap, load_heightmap)
from .scene import SceneNode, Transform, load_scene, scene_from_dict
from .obstacles import (BoxObstacle, CircleObstacle, MIN_OBSTACLE_SIZE,
                        MAX_OBSTACLE_SIZE, extract_obstacles,
                        filter_and_dedupe)
from .spawn_points import SpawnPoint, extract_spawn_points
from .intermediate_format import load_zone_config, validate_zone_config
from .zone_exporter import ZoneExportBundle, ZoneExporter, export_world
