"""
Region tiles - on-disk terrain chunks addressed by signed coordinates.

A zone's terrain is stored as one file per square region.  File names
end in two ``_``-joined signed decimal integers (``00_01``, ``-01_00``,
``01_-01``, ``-01_-01``), optionally after a non-numeric prefix such as
``terrain_``.  Each file is a single-channel 32-bit float TIFF holding
``samples_per_side x samples_per_side`` heights; pixel (row, col) is the
height at world::

    (rx * region_size + col * spacing,  rz * region_size + row * spacing)

with ``spacing = region_size / samples_per_side``.

Dependencies:
    numpy  - array storage
    Pillow - float TIFF reading/writing
    scipy  - bilinear interpolation (map_coordinates)
"""

import os
import re
import logging
from collections import namedtuple

import numpy as np
from PIL import Image
from scipy.ndimage import map_coordinates

log = logging.getLogger(__name__)

TILE_EXTENSION = ".tif"

# Optional non-numeric prefix, then two signed integers joined by '_'.
_TILE_NAME_RE = re.compile(r'^(?:.*[^\d\-])?(-?\d+)_(-?\d+)$')


# ---------------------------------------------------------------------------
# Coordinate types
# ---------------------------------------------------------------------------

class RegionTile(namedtuple('RegionTile', ['rx', 'rz', 'region_size', 'path'])):
    """One region tile: signed coordinates plus the shared region size."""
    __slots__ = ()

    @property
    def footprint(self):
        """World-space (min_x, max_x, min_z, max_z), max exclusive."""
        size = self.region_size
        return (self.rx * size, (self.rx + 1) * size,
                self.rz * size, (self.rz + 1) * size)


class WorldBounds(namedtuple('WorldBounds', ['min_x', 'max_x', 'min_z', 'max_z'])):
    """Axis-aligned world rectangle covered by a zone's terrain."""
    __slots__ = ()

    @property
    def size_x(self):
        return self.max_x - self.min_x

    @property
    def size_z(self):
        return self.max_z - self.min_z

    @property
    def terrain_size(self):
        return max(self.size_x, self.size_z)


# ---------------------------------------------------------------------------
# Tile names
# ---------------------------------------------------------------------------

def parse_tile_name(name):
    """
    Parse a tile file name (with or without extension) into (rx, rz).

    Examples:
        parse_tile_name("00_01")            -> (0, 1)
        parse_tile_name("-01_00")           -> (-1, 0)
        parse_tile_name("01_-01.tif")       -> (1, -1)
        parse_tile_name("terrain_-01_-01")  -> (-1, -1)

    Raises:
        ValueError: If the name does not end in two signed integers.
    """
    stem = os.path.basename(name)
    if stem.lower().endswith(TILE_EXTENSION):
        stem = stem[:-len(TILE_EXTENSION)]
    match = _TILE_NAME_RE.match(stem)
    if match is None:
        raise ValueError("Not a region tile name: {!r}".format(name))
    return int(match.group(1)), int(match.group(2))


def _format_coord(value):
    if value < 0:
        return "-{:02d}".format(-value)
    return "{:02d}".format(value)


def format_tile_name(rx, rz, prefix=""):
    """Inverse of parse_tile_name: (1, -1) -> "01_-01"."""
    return "{}{}_{}".format(prefix, _format_coord(rx), _format_coord(rz))


# ---------------------------------------------------------------------------
# Locator
# ---------------------------------------------------------------------------

def locate_tiles(directory, region_size):
    """
    Find every region tile file in *directory*.

    Args:
        directory: Directory holding ``*.tif`` tile files.
        region_size: World size of one region (shared by all tiles).

    Returns:
        list[RegionTile] sorted by (rz, rx).

    Raises:
        FileNotFoundError: If *directory* does not exist.
        OSError: If *directory* cannot be listed.
        ValueError: If no tile files are found.
    """
    if not os.path.isdir(directory):
        raise FileNotFoundError(
            "Tile directory not found: {}".format(directory))

    tiles = []
    for entry in sorted(os.listdir(directory)):
        if not entry.lower().endswith(TILE_EXTENSION):
            continue
        try:
            rx, rz = parse_tile_name(entry)
        except ValueError:
            log.warning("Ignoring unrecognised tile file: %s", entry)
            continue
        tiles.append(RegionTile(rx, rz, float(region_size),
                                os.path.join(directory, entry)))

    if not tiles:
        raise ValueError("No region tiles found in {}".format(directory))

    tiles.sort(key=lambda t: (t.rz, t.rx))
    log.info("Found %d region tiles in %s", len(tiles), directory)
    return tiles


def compute_world_bounds(tiles):
    """
    Union of all tile footprints.

    Raises:
        ValueError: If *tiles* is empty or mixes region sizes.
    """
    if not tiles:
        raise ValueError("Cannot compute world bounds without tiles")

    sizes = set(t.region_size for t in tiles)
    if len(sizes) != 1:
        raise ValueError(
            "Tiles disagree on region size: {}".format(sorted(sizes)))
    size = sizes.pop()

    rxs = [t.rx for t in tiles]
    rzs = [t.rz for t in tiles]
    return WorldBounds(
        min_x=min(rxs) * size,
        max_x=(max(rxs) + 1) * size,
        min_z=min(rzs) * size,
        max_z=(max(rzs) + 1) * size,
    )


def region_range(regions, region_size):
    """
    Expand an inclusive ``(min_rx, min_rz, max_rx, max_rz)`` range into
    RegionTile entries (without paths).
    """
    min_rx, min_rz, max_rx, max_rz = regions
    if max_rx < min_rx or max_rz < min_rz:
        raise ValueError("Empty region range: {}".format(tuple(regions)))
    return [RegionTile(rx, rz, float(region_size), None)
            for rz in range(min_rz, max_rz + 1)
            for rx in range(min_rx, max_rx + 1)]


# ---------------------------------------------------------------------------
# Tile I/O
# ---------------------------------------------------------------------------

def _tile_grid(rx, rz, region_size, samples_per_side):
    spacing = region_size / float(samples_per_side)
    offsets = np.arange(samples_per_side, dtype=np.float64) * spacing
    xs = rx * region_size + offsets
    zs = rz * region_size + offsets
    return np.meshgrid(xs, zs)


def write_region_tiles(source, regions, region_size, directory,
                       samples_per_side=128):
    """
    Bake *source* heights into one float TIFF per region.

    Args:
        source: Object with ``height(x, z)`` accepting numpy arrays
                (e.g. HeightProfile).
        regions: Inclusive (min_rx, min_rz, max_rx, max_rz) range.
        region_size: World size of one region.
        directory: Output directory (created if missing).
        samples_per_side: Pixels per tile edge.

    Returns:
        list[RegionTile] with the written paths.

    Raises:
        ValueError: If *samples_per_side* or *region_size* is not positive.
        OSError: If a tile cannot be written.
    """
    if samples_per_side <= 0:
        raise ValueError("samples_per_side must be positive, got {}".format(
            samples_per_side))
    if region_size <= 0:
        raise ValueError("region_size must be positive, got {}".format(
            region_size))
    if not os.path.exists(directory):
        os.makedirs(directory)

    written = []
    for tile in region_range(regions, region_size):
        grid_x, grid_z = _tile_grid(tile.rx, tile.rz, tile.region_size,
                                    samples_per_side)
        heights = np.asarray(source.height(grid_x, grid_z), dtype=np.float32)

        path = os.path.join(directory,
                            format_tile_name(tile.rx, tile.rz) + TILE_EXTENSION)
        Image.fromarray(heights).save(path, format="TIFF")
        written.append(tile._replace(path=path))
        log.debug("Wrote region tile (%d, %d): %s", tile.rx, tile.rz, path)

    log.info("Wrote %d region tiles to %s", len(written), directory)
    return written


def read_tile(path):
    """Read one tile file as a 2D float32 array (row = z, col = x)."""
    with Image.open(path) as img:
        return np.array(img, dtype=np.float32)


# ---------------------------------------------------------------------------
# TileDataset
# ---------------------------------------------------------------------------

class TileDataset(object):
    """
    Previously generated terrain, queried by world coordinate.

    ``height(x, z)`` interpolates bilinearly inside the owning tile and
    returns NaN where no tile exists.
    """

    def __init__(self, tiles, arrays):
        """
        Args:
            tiles: list[RegionTile].
            arrays: dict {(rx, rz): 2D float32 array}, all the same shape.
        """
        if not tiles:
            raise ValueError("TileDataset needs at least one tile")

        shapes = set(a.shape for a in arrays.values())
        if len(shapes) != 1:
            raise ValueError(
                "Region tiles have mismatched sample grids: {}".format(
                    sorted(shapes)))
        shape = shapes.pop()
        if shape[0] != shape[1]:
            raise ValueError("Region tiles must be square, got {}".format(shape))

        self.tiles = list(tiles)
        self.arrays = arrays
        self.region_size = tiles[0].region_size
        self.samples_per_side = shape[0]
        self.spacing = self.region_size / float(self.samples_per_side)
        self.bounds = compute_world_bounds(self.tiles)

    @classmethod
    def load(cls, directory, region_size):
        """Locate and read every tile in *directory*."""
        tiles = locate_tiles(directory, region_size)
        arrays = {}
        for tile in tiles:
            arrays[(tile.rx, tile.rz)] = read_tile(tile.path)
        return cls(tiles, arrays)

    def height(self, x, z):
        """Interpolated height at world (*x*, *z*); NaN outside all tiles."""
        scalar = np.ndim(x) == 0 and np.ndim(z) == 0
        x, z = np.broadcast_arrays(np.asarray(x, dtype=np.float64),
                                   np.asarray(z, dtype=np.float64))
        x = np.atleast_1d(x)
        z = np.atleast_1d(z)
        result = np.full(x.shape, np.nan, dtype=np.float64)

        size = self.region_size
        rx = np.floor(x / size)
        rz = np.floor(z / size)
        for (tx, tz), data in self.arrays.items():
            mask = (rx == tx) & (rz == tz)
            if not mask.any():
                continue
            cols = (x[mask] - tx * size) / self.spacing
            rows = (z[mask] - tz * size) / self.spacing
            result[mask] = map_coordinates(data, [rows, cols], order=1,
                                           mode='nearest')

        if scalar:
            return float(result[0])
        return result
