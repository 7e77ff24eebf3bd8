"""
Heightmap sampling and the dual-file heightmap artifact.

A heightmap export is two files sharing one base name:

    <name>_heightmap.json   metadata
        version, width, height,
        world_min_x, world_max_x, world_min_z, world_max_z,
        terrain_size
    <name>_heightmap.bin    width * height little-endian float32,
                            row-major by increasing z, then increasing x

The server loads both and answers elevation queries by bilinear
interpolation over the sample grid; load_heightmap() and
HeightmapAsset.get_height() reproduce that reader so exports can be
checked without the server.
"""

import os
import logging

import numpy as np

from .intermediate_format import (save_json, load_json, write_binary,
                                  HEIGHTMAP_FORMAT_VERSION)
from .region_tiles import WorldBounds

log = logging.getLogger(__name__)

BASE_RESOLUTION = 512
LARGE_RESOLUTION = 1024

# Terrain wider than this (world units) uses LARGE_RESOLUTION.
LARGE_TERRAIN_THRESHOLD = 1024.0

_SAMPLE_DTYPE = np.dtype('<f4')


def choose_resolution(bounds):
    """Samples per side for *bounds*, keeping sample density roughly constant."""
    if bounds.terrain_size > LARGE_TERRAIN_THRESHOLD:
        return LARGE_RESOLUTION
    return BASE_RESOLUTION


def heightmap_paths(output_dir, name):
    """Return (json_path, bin_path) for heightmap *name*."""
    base = os.path.join(output_dir, "{}_heightmap".format(name))
    return base + ".json", base + ".bin"


# ---------------------------------------------------------------------------
# HeightmapAsset
# ---------------------------------------------------------------------------

class HeightmapAsset(object):
    """
    A square grid of elevation samples over a WorldBounds rectangle.

    Attributes:
        resolution: Samples per side.
        bounds: WorldBounds covered by the grid.
        buffer: 1D float32 array, len == resolution ** 2, row-major (z, x).
        nan_count: Number of samples that were NaN and replaced by 0.0.
    """

    def __init__(self, resolution, bounds, buffer, nan_count=0):
        buffer = np.asarray(buffer, dtype=np.float32).reshape(-1)
        if buffer.size != resolution * resolution:
            raise ValueError(
                "Heightmap buffer has {} samples, expected {}x{}".format(
                    buffer.size, resolution, resolution))
        self.resolution = int(resolution)
        self.bounds = bounds
        self.buffer = buffer
        self.nan_count = nan_count

    @property
    def terrain_size(self):
        return self.bounds.terrain_size

    @property
    def step_x(self):
        return self.bounds.size_x / float(self.resolution)

    @property
    def step_z(self):
        return self.bounds.size_z / float(self.resolution)

    def grid(self):
        """The buffer as a (resolution, resolution) array, row = z."""
        return self.buffer.reshape(self.resolution, self.resolution)

    def sample_centers(self):
        """World coordinates of the cell centres: (xs, zs) 1D arrays."""
        idx = np.arange(self.resolution, dtype=np.float64) + 0.5
        xs = self.bounds.min_x + idx * self.step_x
        zs = self.bounds.min_z + idx * self.step_z
        return xs, zs

    def metadata(self):
        b = self.bounds
        return {
            "version": HEIGHTMAP_FORMAT_VERSION,
            "width": self.resolution,
            "height": self.resolution,
            "world_min_x": float(b.min_x),
            "world_max_x": float(b.max_x),
            "world_min_z": float(b.min_z),
            "world_max_z": float(b.max_z),
            "terrain_size": float(b.terrain_size),
        }

    def contains(self, x, z):
        b = self.bounds
        return b.min_x <= x <= b.max_x and b.min_z <= z <= b.max_z

    def get_height(self, x, z):
        """
        Bilinear height at world (*x*, *z*), the way the server reads it.

        Positions are normalised over the bounds, clamped to [0, 1] and
        mapped onto pixel indices 0 .. resolution - 1.
        """
        b = self.bounds
        res = self.resolution
        norm_x = min(max((x - b.min_x) / b.size_x, 0.0), 1.0)
        norm_z = min(max((z - b.min_z) / b.size_z, 0.0), 1.0)

        px = norm_x * (res - 1)
        pz = norm_z * (res - 1)
        x0 = int(np.floor(px))
        z0 = int(np.floor(pz))
        x1 = min(x0 + 1, res - 1)
        z1 = min(z0 + 1, res - 1)
        fx = px - x0
        fz = pz - z0

        grid = self.grid()
        h00 = float(grid[z0, x0])
        h10 = float(grid[z0, x1])
        h01 = float(grid[z1, x0])
        h11 = float(grid[z1, x1])

        h0 = h00 * (1.0 - fx) + h10 * fx
        h1 = h01 * (1.0 - fx) + h11 * fx
        return h0 * (1.0 - fz) + h1 * fz


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------

def sample_heightmap(source, bounds, resolution=None):
    """
    Sample *source* on a regular grid over *bounds*.

    Args:
        source: Object with ``height(x, z)`` accepting numpy arrays
                (HeightProfile, TileDataset).
        bounds: WorldBounds to cover.
        resolution: Samples per side.  None picks choose_resolution().

    Returns:
        HeightmapAsset.  NaN samples are stored as 0.0 and counted in
        ``nan_count``.
    """
    if resolution is None:
        resolution = choose_resolution(bounds)
    if resolution <= 0:
        raise ValueError("Resolution must be positive, got {}".format(resolution))

    idx = np.arange(resolution, dtype=np.float64) + 0.5
    xs = bounds.min_x + idx * (bounds.size_x / float(resolution))
    zs = bounds.min_z + idx * (bounds.size_z / float(resolution))
    grid_x, grid_z = np.meshgrid(xs, zs)

    heights = np.asarray(source.height(grid_x, grid_z), dtype=np.float64)
    nan_mask = np.isnan(heights)
    nan_count = int(nan_mask.sum())
    heights[nan_mask] = 0.0

    log.debug("Sampled %dx%d heightmap over (%.1f, %.1f)-(%.1f, %.1f)",
              resolution, resolution, bounds.min_x, bounds.min_z,
              bounds.max_x, bounds.max_z)
    return HeightmapAsset(resolution, bounds, heights, nan_count=nan_count)


# ---------------------------------------------------------------------------
# Exporter / reader
# ---------------------------------------------------------------------------

def export_heightmap(asset, output_dir, name):
    """
    Write ``<name>_heightmap.bin`` and ``<name>_heightmap.json``.

    The binary file is written first so the metadata never points at a
    missing sample buffer.

    Returns:
        str: Path to the metadata JSON file.

    Raises:
        OSError: If either file cannot be written.
    """
    json_path, bin_path = heightmap_paths(output_dir, name)

    write_binary(bin_path, asset.buffer.astype(_SAMPLE_DTYPE).tobytes())
    save_json(json_path, asset.metadata())

    log.info("Exported heightmap %s (%dx%d, terrain size %.1f)",
             json_path, asset.resolution, asset.resolution,
             asset.terrain_size)
    if asset.nan_count:
        log.warning("Heightmap '%s': %d of %d samples fell outside the "
                    "terrain data and were written as 0.0",
                    name, asset.nan_count, asset.buffer.size)
    return json_path


def load_heightmap(json_path):
    """
    Read a heightmap export back into a HeightmapAsset.

    The binary path is derived from *json_path* by swapping the extension.

    Raises:
        ValueError: On an unsupported version, non-square grid or a
                    sample buffer whose size does not match the metadata.
    """
    meta = load_json(json_path)
    version = meta.get("version")
    if version != HEIGHTMAP_FORMAT_VERSION:
        raise ValueError("Unsupported heightmap version: {}".format(version))

    width = int(meta["width"])
    height = int(meta["height"])
    if width != height:
        raise ValueError("Heightmap must be square, got {}x{}".format(width, height))

    bin_path = os.path.splitext(json_path)[0] + ".bin"
    with open(bin_path, 'rb') as f:
        raw = f.read()

    expected = width * height * _SAMPLE_DTYPE.itemsize
    if len(raw) != expected:
        raise ValueError(
            "Height data size mismatch in {}: expected {} bytes, got {}".format(
                bin_path, expected, len(raw)))

    samples = np.frombuffer(raw, dtype=_SAMPLE_DTYPE).astype(np.float32)
    bounds = WorldBounds(meta["world_min_x"], meta["world_max_x"],
                         meta["world_min_z"], meta["world_max_z"])
    log.debug("Loaded heightmap %dx%d from %s", width, height, json_path)
    return HeightmapAsset(width, bounds, samples)
