"""
Zone exporter - runs the world export pipeline over configured zones.

For each zone, sequentially:

    1. Terrain (when the zone has a ``terrain`` section)
         generate: HeightProfile -> region tiles + sampled heightmap
         load:     region tiles on disk -> world bounds -> sampled heightmap
    2. Geometry (always)
         scene -> obstacles (filtered, deduplicated) + spawn points

The two halves fail independently: a missing tile directory skips only
the heightmap, a missing scene skips only the zone's geometry.  After all
zones, the aggregate files are written.

Output layout:
    {output_dir}/
        {name}_heightmap.json
        {name}_heightmap.bin
        obstacles.json            {zone_id: [obstacle, ...]}
        spawn_points.json         {zone_id: [spawn, ...]}
        terrain/{name}/NN_NN.tif  (generate mode, unless tiles_dir is set)
"""

import os
import logging

from .empire_profiles import DEFAULT_ZONES, resolve_empire
from .height_profile import get_height_profile
from .region_tiles import (TileDataset, write_region_tiles,
                           compute_world_bounds, region_range)
from .heightmap import sample_heightmap, export_heightmap
from .scene import load_scene
from .obstacles import extract_obstacles, filter_and_dedupe
from .spawn_points import extract_spawn_points
from .intermediate_format import (save_json, slugify, load_zone_config,
                                  validate_zone_config)

log = logging.getLogger(__name__)

OBSTACLES_FILENAME = "obstacles.json"
SPAWN_POINTS_FILENAME = "spawn_points.json"


class ZoneExportBundle(object):
    """Obstacles and spawn points extracted from one zone's scene."""

    def __init__(self, zone_id, obstacles, spawn_points):
        self.zone_id = zone_id
        self.obstacles = list(obstacles)
        self.spawn_points = list(spawn_points)

    def __repr__(self):
        return "ZoneExportBundle(zone_id={}, {} obstacles, {} spawn points)".format(
            self.zone_id, len(self.obstacles), len(self.spawn_points))

    def obstacles_json(self):
        return [o.to_dict() for o in self.obstacles]

    def spawn_points_json(self):
        return [s.to_dict() for s in self.spawn_points]


class ZoneExporter(object):
    """
    Exports heightmaps, obstacles and spawn points for a list of zones.

    All inputs are explicit: the zone list, the output directory, where
    scenes live and how to load them.
    """

    def __init__(self, zones, output_dir, scenes_root=None,
                 scene_loader=None, mode=None):
        """
        Args:
            zones: List of zone definition dicts (see intermediate_format).
            output_dir: Directory for all generated files.
            scenes_root: Base directory for relative zone scene paths.
            scene_loader: Callable path -> SceneNode (default load_scene).
            mode: Optional "generate"/"load" overriding every zone's
                  terrain mode.
        """
        self.zones = zones
        self.output_dir = output_dir
        self.scenes_root = scenes_root
        self.scene_loader = scene_loader or load_scene
        self.mode = mode

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def export_all(self):
        """
        Run the full pipeline.

        Returns:
            dict: {
                'heightmaps': {zone_id: json_path},
                'bundles': {zone_id: ZoneExportBundle},
                'failed_zones': [zone_id, ...],
                'obstacles_path': str or None,
                'spawn_points_path': str or None,
            }
        """
        summary = {
            'heightmaps': {},
            'bundles': {},
            'failed_zones': [],
            'obstacles_path': None,
            'spawn_points_path': None,
        }

        for zone in self.zones:
            zone_id = zone['id']
            log.info("Exporting zone %d '%s'", zone_id, zone.get('name', ''))

            heightmap_path = self.export_terrain(zone)
            if heightmap_path is not None:
                summary['heightmaps'][zone_id] = heightmap_path

            bundle = self.export_geometry(zone)
            if bundle is None:
                summary['failed_zones'].append(zone_id)
            else:
                summary['bundles'][zone_id] = bundle

        obstacles_path, spawn_path = self.write_world_geometry(
            summary['bundles'].values())
        summary['obstacles_path'] = obstacles_path
        summary['spawn_points_path'] = spawn_path

        log.info("World export complete: %d heightmaps, %d zones exported, "
                 "%d zones failed", len(summary['heightmaps']),
                 len(summary['bundles']), len(summary['failed_zones']))
        return summary

    def export_terrain(self, zone):
        """
        Produce the zone's heightmap artifact.

        Returns:
            str: Path to ``<name>_heightmap.json``, or None when the zone
                 has no terrain or the export failed.
        """
        terrain = zone.get('terrain')
        if not terrain:
            log.info("Zone %d has no terrain section, skipping heightmap",
                     zone['id'])
            return None

        name = self.heightmap_name(zone)
        mode = self.mode or terrain.get('mode', 'generate')
        try:
            if mode == 'generate':
                source, bounds = self._generate_terrain(zone, terrain, name)
            elif mode == 'load':
                source, bounds = self._load_terrain(terrain, name)
            else:
                raise ValueError("Unknown terrain mode '{}'".format(mode))
            asset = sample_heightmap(source, bounds, terrain.get('resolution'))
        except (OSError, ValueError, KeyError, TypeError) as e:
            log.error("Zone %d: heightmap export skipped: %s", zone['id'], e)
            return None

        try:
            return export_heightmap(asset, self.output_dir, name)
        except OSError as e:
            log.error("Zone %d: failed to write heightmap '%s': %s",
                      zone['id'], name, e)
            return None

    def export_geometry(self, zone):
        """
        Extract obstacles and spawn points from the zone's scene.

        Returns:
            ZoneExportBundle, or None if the scene could not be loaded or
            holds malformed nodes.
        """
        scene_path = self.scene_path(zone)
        try:
            scene = self.scene_loader(scene_path)
        except (OSError, ValueError) as e:
            log.error("Zone %d: failed to load scene %s: %s",
                      zone['id'], scene_path, e)
            return None

        try:
            raw = extract_obstacles(scene)
            obstacles = filter_and_dedupe(raw)
            spawn_points = extract_spawn_points(scene)
        except (TypeError, AttributeError, ValueError) as e:
            log.error("Zone %d: malformed scene %s: %s",
                      zone['id'], scene_path, e)
            return None
        finally:
            scene.free()

        log.info("Zone %d: %d obstacles (%d raw), %d spawn points",
                 zone['id'], len(obstacles), len(raw), len(spawn_points))
        return ZoneExportBundle(zone['id'], obstacles, spawn_points)

    def write_world_geometry(self, bundles):
        """
        Write obstacles.json and spawn_points.json for all *bundles*.

        Returns:
            tuple: (obstacles_path, spawn_points_path); an entry is None
                   when that file could not be written.
        """
        ordered = sorted(bundles, key=lambda b: b.zone_id)
        obstacles = dict((str(b.zone_id), b.obstacles_json()) for b in ordered)
        spawns = dict((str(b.zone_id), b.spawn_points_json()) for b in ordered)

        obstacles_path = self._write_json(OBSTACLES_FILENAME, obstacles)
        spawn_path = self._write_json(SPAWN_POINTS_FILENAME, spawns)
        return obstacles_path, spawn_path

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def heightmap_name(self, zone):
        if zone.get('heightmap_name'):
            return zone['heightmap_name']
        if zone.get('empire') is not None:
            return resolve_empire(zone['empire']).key
        return slugify(zone.get('name', str(zone['id'])))

    def scene_path(self, zone):
        path = zone['scene']
        if self.scenes_root and not os.path.isabs(path):
            path = os.path.join(self.scenes_root, path)
        return path

    def _tiles_dir(self, terrain, name):
        return terrain.get('tiles_dir') or os.path.join(
            self.output_dir, "terrain", name)

    def _generate_terrain(self, zone, terrain, name):
        profile = get_height_profile(zone.get('empire'))
        region_size = float(terrain['region_size'])
        regions = terrain.get('regions')
        if regions is None:
            raise ValueError("terrain.regions is required to generate tiles")
        tiles_dir = self._tiles_dir(terrain, name)

        try:
            tiles = write_region_tiles(
                profile, regions, region_size, tiles_dir,
                samples_per_side=terrain.get('samples_per_side', 128))
        except OSError as e:
            log.error("Zone %d: failed to write region tiles to %s: %s",
                      zone['id'], tiles_dir, e)
            tiles = region_range(regions, region_size)
        return profile, compute_world_bounds(tiles)

    def _load_terrain(self, terrain, name):
        dataset = TileDataset.load(self._tiles_dir(terrain, name),
                                   terrain['region_size'])
        return dataset, dataset.bounds

    def _write_json(self, filename, data):
        path = os.path.join(self.output_dir, filename)
        try:
            save_json(path, data)
        except OSError as e:
            log.error("Failed to write %s: %s", path, e)
            return None
        log.info("Wrote %s (%d zones)", path, len(data))
        return path


# ---------------------------------------------------------------------------
# Convenience functions
# ---------------------------------------------------------------------------

def export_world(zones=None, output_dir="export", scenes_root=None,
                 scene_loader=None, mode=None):
    """
    Export heightmaps, obstacles and spawn points for every zone.

    Args:
        zones: Path to a zone configuration JSON file, a list of zone
               dicts, or None for the built-in default zones.
        output_dir: Directory for all generated files.
        scenes_root: Base directory for relative scene paths.
        scene_loader: Callable path -> SceneNode (default load_scene).
        mode: Optional terrain mode override ("generate" / "load").

    Returns:
        dict: Summary from ZoneExporter.export_all().

    Raises:
        ValueError: If the zone configuration is invalid.
    """
    if zones is None:
        zones = DEFAULT_ZONES
    elif isinstance(zones, str):
        zones = load_zone_config(zones)
    else:
        errors = validate_zone_config({'zones': zones})
        if errors:
            raise ValueError("Invalid zone configuration:\n  {}".format(
                "\n  ".join(errors)))

    exporter = ZoneExporter(zones, output_dir, scenes_root=scenes_root,
                            scene_loader=scene_loader, mode=mode)
    return exporter.export_all()
