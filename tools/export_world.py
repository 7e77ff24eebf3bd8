#!/usr/bin/env python
"""
World data exporter for the authoritative game server.

Generates (or loads) zone terrain, writes sampled heightmaps, and converts
the authored zone scenes into obstacles.json and spawn_points.json.

Usage:
  python export_world.py export [-c zones.json] [-s scenes_dir] [-o output_dir]
                                [--mode generate|load]
  python export_world.py check <name>_heightmap.json
"""

import os
import sys
import logging
import argparse

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from world_export.zone_exporter import export_world
from world_export.heightmap import load_heightmap

log = logging.getLogger("export_world")


def _run_export(args):
    try:
        summary = export_world(args.config, output_dir=args.output,
                               scenes_root=args.scenes_root, mode=args.mode)
    except (OSError, ValueError) as e:
        log.error("%s", e)
        return 2

    print("\n{} heightmaps, {} zones exported, {} zones failed".format(
        len(summary['heightmaps']), len(summary['bundles']),
        len(summary['failed_zones'])))
    for zone_id in summary['failed_zones']:
        print("  FAILED  zone {}".format(zone_id))
    if summary['failed_zones'] or summary['obstacles_path'] is None \
            or summary['spawn_points_path'] is None:
        return 1
    return 0


def _run_check(args):
    try:
        asset = load_heightmap(args.heightmap)
    except (OSError, ValueError, KeyError) as e:
        print("INVALID  {} -- {}".format(args.heightmap, e))
        return 1

    grid = asset.grid()
    b = asset.bounds
    print("{}: {}x{} over ({:.1f}, {:.1f})-({:.1f}, {:.1f}), "
          "height range [{:.2f}, {:.2f}]".format(
              args.heightmap, asset.resolution, asset.resolution,
              b.min_x, b.min_z, b.max_x, b.max_z,
              float(grid.min()), float(grid.max())))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Export terrain heightmaps, obstacles and spawn points')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command')

    p_export = subparsers.add_parser('export', help='Run the export pipeline')
    p_export.add_argument('-c', '--config', default=None,
                          help='Zone configuration JSON (default: built-in zones)')
    p_export.add_argument('-s', '--scenes-root', default=None,
                          help='Base directory for zone scene files')
    p_export.add_argument('-o', '--output', default='export',
                          help='Output directory (default: export)')
    p_export.add_argument('--mode', choices=('generate', 'load'), default=None,
                          help='Override every zone\'s terrain mode')

    p_check = subparsers.add_parser('check',
                                    help='Validate an exported heightmap')
    p_check.add_argument('heightmap', help='Path to <name>_heightmap.json')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    if args.command == 'export':
        return _run_export(args)
    if args.command == 'check':
        return _run_check(args)
    parser.print_help()
    return 0


if __name__ == '__main__':
    sys.exit(main())
