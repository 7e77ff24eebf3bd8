"""
File formats and configuration helpers for the world export pipeline.

Provides JSON and binary I/O helpers, the heightmap format version, slug
generation, and loading/validation of the zone configuration that drives
ZoneExporter.

Zone configuration layout (zones.json):
    zones           - list of zone dicts:
        id              - numeric zone id (key in obstacles/spawn JSON)
        name            - display name
        empire          - empire key/name/id, or null for neutral zones
        scene           - scene description path (relative to scenes_root)
        heightmap_name  - optional; defaults to the empire key
        terrain         - optional dict:
            mode              - "generate" or "load"
            tiles_dir         - region tile directory
            region_size       - world size of one region tile
            regions           - [min_rx, min_rz, max_rx, max_rz] (generate)
            samples_per_side  - pixels per tile edge (generate)
            resolution        - optional fixed heightmap resolution
"""

import os
import json
import re
import logging

from .empire_profiles import resolve_empire

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Format versions
# ---------------------------------------------------------------------------

HEIGHTMAP_FORMAT_VERSION = 1

TERRAIN_MODES = ("generate", "load")


# ---------------------------------------------------------------------------
# Slug generation
# ---------------------------------------------------------------------------

def slugify(name):
    """
    Convert a display name to a filesystem-safe slug.

    Examples:
        slugify("Shinsoo Village")   -> "shinsoo_village"
        slugify("--Foo  Bar!--")     -> "foo_bar"
    """
    slug = name.lower()
    slug = re.sub(r'[^a-z0-9]+', '_', slug)
    slug = slug.strip('_')
    return slug


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------

def _ensure_parent(filepath):
    parent = os.path.dirname(filepath)
    if parent and not os.path.exists(parent):
        os.makedirs(parent)


def load_json(filepath):
    """
    Load and parse a JSON file.

    Raises:
        ValueError: If the file is not valid JSON.
    """
    with open(filepath, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(filepath, data, indent=2):
    """
    Write a dict to a JSON file, creating parent directories as needed.

    Args:
        filepath: Destination file path.
        data: Dict (or list) to serialize.
        indent: JSON indentation level (default 2).
    """
    _ensure_parent(filepath)
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent)


def write_binary(filepath, payload):
    """Write raw bytes, creating parent directories as needed."""
    _ensure_parent(filepath)
    with open(filepath, 'wb') as f:
        f.write(payload)


# ---------------------------------------------------------------------------
# Zone configuration
# ---------------------------------------------------------------------------

def _is_positive_int(value):
    return (isinstance(value, int) and not isinstance(value, bool)
            and value > 0)


def validate_zone_config(data):
    """
    Validate a zone configuration dict.

    Returns a list of error strings.  An empty list means the
    configuration is valid.
    """
    errors = []

    if not isinstance(data, dict) or "zones" not in data:
        return ["Missing required field: zones"]
    zones = data["zones"]
    if not isinstance(zones, list):
        return ["zones must be a list"]

    seen_ids = set()
    for i, zone in enumerate(zones):
        if not isinstance(zone, dict):
            errors.append("zones[{}] must be a dict".format(i))
            continue

        for key in ("id", "name", "scene"):
            if key not in zone:
                errors.append("zones[{}] missing key '{}'".format(i, key))

        zone_id = zone.get("id")
        if zone_id is not None:
            if not isinstance(zone_id, int) or isinstance(zone_id, bool):
                errors.append("zones[{}].id must be an integer".format(i))
            elif zone_id in seen_ids:
                errors.append("Duplicate zone id: {}".format(zone_id))
            else:
                seen_ids.add(zone_id)

        empire = zone.get("empire")
        if empire is not None:
            try:
                resolve_empire(empire)
            except ValueError as e:
                errors.append("zones[{}]: {}".format(i, e))

        terrain = zone.get("terrain")
        if terrain is None:
            continue
        if not isinstance(terrain, dict):
            errors.append("zones[{}].terrain must be a dict".format(i))
            continue

        mode = terrain.get("mode", "generate")
        if mode not in TERRAIN_MODES:
            errors.append("zones[{}].terrain.mode must be one of {}, got '{}'"
                          .format(i, TERRAIN_MODES, mode))
        size = terrain.get("region_size")
        if not isinstance(size, (int, float)) or size <= 0:
            errors.append("zones[{}].terrain.region_size must be a positive "
                          "number".format(i))
        for key in ("samples_per_side", "resolution"):
            value = terrain.get(key)
            if value is not None and not _is_positive_int(value):
                errors.append("zones[{}].terrain.{} must be a positive "
                              "integer".format(i, key))
        if mode == "generate":
            if empire is None:
                errors.append("zones[{}]: terrain generation needs an "
                              "empire".format(i))
            regions = terrain.get("regions")
            if not isinstance(regions, (list, tuple)) or len(regions) != 4:
                errors.append("zones[{}].terrain.regions must be "
                              "[min_rx, min_rz, max_rx, max_rz]".format(i))
        elif "tiles_dir" not in terrain:
            errors.append("zones[{}].terrain.tiles_dir is required in load "
                          "mode".format(i))

    return errors


def load_zone_config(filepath):
    """
    Load and validate a zone configuration file.

    Returns:
        list[dict]: The zone definitions.

    Raises:
        ValueError: If the file is malformed or fails validation.
    """
    data = load_json(filepath)
    errors = validate_zone_config(data)
    if errors:
        raise ValueError("Invalid zone configuration {}:\n  {}".format(
            filepath, "\n  ".join(errors)))
    log.info("Loaded %d zones from %s", len(data["zones"]), filepath)
    return data["zones"]
