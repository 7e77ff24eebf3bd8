"""
Height Profile - Deterministic procedural elevation for empire zones.

Maps (empire, world_x, world_z) to a non-negative elevation by stacking
noise layers and shaping rules in a fixed order:

    1. base layer      - low-frequency fractal noise, mapped to [0, amp]
    2. feature layers  - mountain/cliff/dune noise faded in by a
                         smoothstep gate on the normalised zone position
    3. detail layer    - small signed high-frequency roughness
    4. village plateau - flat build area with a raised rim, blended
                         back into the natural terrain
    5. carves          - river beds, oasis depressions, harbor cuts
    6. clamp           - max(0, height)

All functions operate element-wise on numpy arrays, so a whole sampling
grid is evaluated in one call.  Scalar inputs return a plain float.

Dependencies:
    numpy - required for array operations

Usage:
    from world_export.height_profile import height

    h = height('shinsoo', 120.0, -40.0)
"""

import logging
import math
import random

log = logging.getLogger(__name__)

try:
    import numpy as np
except ImportError:
    raise ImportError(
        "numpy is required for height_profile. "
        "Install it with: pip install numpy"
    )

from .empire_profiles import resolve_empire


# ===================================================================
# Simplex Noise
# ===================================================================

class SimplexNoise:
    """
    2D Simplex noise implementation with seeded permutation table.

    Provides reproducible noise generation via a seed value.  Evaluation
    is vectorised: coordinates may be scalars or numpy arrays of any
    (matching) shape.
    """

    # Skew factors for 2D simplex
    _F2 = 0.5 * (math.sqrt(3.0) - 1.0)
    _G2 = (3.0 - math.sqrt(3.0)) / 6.0

    # Gradient vectors for 2D, split by component for fancy indexing
    _GRAD_X = np.array([1, -1, 1, -1, 1, -1, 0, 0], dtype=np.float64)
    _GRAD_Y = np.array([1, 1, -1, -1, 0, 0, 1, -1], dtype=np.float64)

    def __init__(self, seed=0):
        """Initialise with a deterministic seed."""
        self.seed = seed
        self._perm = self._generate_permutation(seed)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _generate_permutation(seed):
        """Build a 512-entry permutation table from *seed*."""
        rng = random.Random(seed)
        p = list(range(256))
        rng.shuffle(p)
        return np.array(p + p, dtype=np.int64)  # double for wrapping

    def _corner(self, hash_val, x, y):
        t = 0.5 - x * x - y * y
        t = np.where(t > 0.0, t, 0.0)
        t *= t
        g = hash_val & 7
        return t * t * (self._GRAD_X[g] * x + self._GRAD_Y[g] * y)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def noise2d(self, x, y):
        """
        Evaluate 2D simplex noise at (*x*, *y*).

        Returns a float (or array) in the approximate range [-1.0, 1.0].
        """
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        G2 = self._G2
        perm = self._perm

        s = (x + y) * self._F2
        i = np.floor(x + s)
        j = np.floor(y + s)

        t = (i + j) * G2
        x0 = x - (i - t)
        y0 = y - (j - t)

        i1 = (x0 > y0).astype(np.int64)
        j1 = 1 - i1

        x1 = x0 - i1 + G2
        y1 = y0 - j1 + G2
        x2 = x0 - 1.0 + 2.0 * G2
        y2 = y0 - 1.0 + 2.0 * G2

        ii = i.astype(np.int64) & 255
        jj = j.astype(np.int64) & 255

        n = self._corner(perm[ii + perm[jj]], x0, y0)
        n = n + self._corner(perm[ii + i1 + perm[jj + j1]], x1, y1)
        n = n + self._corner(perm[ii + 1 + perm[jj + 1]], x2, y2)

        # Scale to approximate [-1, 1]
        n = 70.0 * n
        if n.ndim == 0:
            return float(n)
        return n

    def octave_noise2d(self, x, y, octaves=4, persistence=0.5,
                       lacunarity=2.0):
        """
        Generate fractal Brownian motion (fBm) noise.

        Parameters:
            x, y:        Sample coordinates.
            octaves:     Number of noise layers (default 4).
            persistence: Amplitude decay per octave (0-1).
            lacunarity:  Frequency multiplier per octave (>1).

        Returns:
            The normalised accumulated noise value in about [-1, 1].
        """
        total = 0.0
        amplitude = 1.0
        frequency = 1.0
        max_amplitude = 0.0

        for _ in range(octaves):
            total = total + self.noise2d(x * frequency, y * frequency) * amplitude
            max_amplitude += amplitude
            amplitude *= persistence
            frequency *= lacunarity

        if max_amplitude > 0.0:
            total = total / max_amplitude
        return total

    def ridged_noise2d(self, x, y, octaves=4, persistence=0.5,
                       lacunarity=2.0):
        """
        Ridged multifractal noise: octaves of ``1 - |n|``.

        Sharp crests where the underlying noise crosses zero, which reads
        as mountain ridges.  Remapped to about [-1, 1] like the other modes.
        """
        total = 0.0
        amplitude = 1.0
        frequency = 1.0
        max_amplitude = 0.0

        for _ in range(octaves):
            n = self.noise2d(x * frequency, y * frequency)
            total = total + (1.0 - np.abs(n)) * amplitude
            max_amplitude += amplitude
            amplitude *= persistence
            frequency *= lacunarity

        if max_amplitude > 0.0:
            total = total / max_amplitude
        return total * 2.0 - 1.0


# ===================================================================
# Shaping Primitives
# ===================================================================

def smoothstep(t):
    """Hermite smoothstep: 3t^2 - 2t^3 on t clamped to [0, 1]."""
    t = np.clip(t, 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def _lerp(a, b, t):
    return a + (b - a) * t


def _gate_value(kind, nx, nz):
    """Raw gate input in [0, 1] for a normalised zone position."""
    dx = np.abs(nx - 0.5) * 2.0
    dz = np.abs(nz - 0.5) * 2.0
    if kind == 'north':
        return 1.0 - nz
    if kind == 'south':
        return nz
    if kind == 'east':
        return nx
    if kind == 'west':
        return 1.0 - nx
    if kind == 'radial':
        return np.sqrt(dx * dx + dz * dz)
    if kind == 'corners':
        return np.minimum(dx, dz)
    if kind == 'edges':
        return np.maximum(dx, dz)
    raise ValueError("Unknown gate kind: {!r}".format(kind))


def gate_factor(gate, nx, nz):
    """
    Spatial fade factor for a feature layer.

    ``smoothstep((v - lo) / (hi - lo))`` where ``v`` is derived from the
    normalised position according to ``gate.kind``.
    """
    v = _gate_value(gate.kind, nx, nz)
    return smoothstep((v - gate.lo) / (gate.hi - gate.lo))


class NoiseSampler(object):
    """Evaluates one NoiseLayer definition in world coordinates."""

    def __init__(self, layer):
        self.layer = layer
        self._noise = SimplexNoise(seed=layer.seed)

    def sample(self, x, z):
        """Return noise in about [-1, 1] at world (*x*, *z*)."""
        layer = self.layer
        fx = x * layer.frequency
        fz = z * layer.frequency
        if layer.fractal == 'none':
            return self._noise.noise2d(fx, fz)
        if layer.fractal == 'fbm':
            return self._noise.octave_noise2d(
                fx, fz, octaves=layer.octaves,
                persistence=layer.gain, lacunarity=layer.lacunarity)
        if layer.fractal == 'ridged':
            return self._noise.ridged_noise2d(
                fx, fz, octaves=layer.octaves,
                persistence=layer.gain, lacunarity=layer.lacunarity)
        raise ValueError("Unknown fractal mode: {!r}".format(layer.fractal))


# ===================================================================
# Village plateau and carves
# ===================================================================

def apply_village_plateau(natural, x, z, village):
    """
    Flatten the village build area and blend it back into *natural*.

    Radii: inner = 0.7R (flat), rim = R (raised sin bump), outer = 2R
    (smoothstep back to natural terrain).
    """
    dx = x - village.center_x
    dz = z - village.center_z
    d = np.sqrt(dx * dx + dz * dz)

    inner = village.radius * 0.7
    rim = village.radius
    outer = village.radius * 2.0
    base = village.base_height

    t_rim = np.clip((d - inner) / (rim - inner), 0.0, 1.0)
    wall = base + village.wall_height * np.sin(math.pi * t_rim)

    t_blend = (d - rim) / (outer - rim)
    blended = _lerp(base, natural, smoothstep(t_blend))

    result = np.where(d < inner, base,
                      np.where(d < rim, wall,
                               np.where(d < outer, blended, natural)))
    return result


def apply_river(h, x, z, river):
    """Pull height toward the river bed within half_width of its line."""
    line_z = river.z0 + river.meander_amplitude * np.sin(x * river.meander_frequency)
    dist = np.abs(z - line_z)
    inside = (x >= river.x_min) & (x <= river.x_max) & (dist < river.half_width)
    f = np.clip(1.0 - dist / river.half_width, 0.0, 1.0)
    f = f * f
    return np.where(inside, _lerp(h, river.bed_height, f), h)


def apply_oasis(h, x, z, oasis):
    """Sink a bowl of *depth* at the oasis centre."""
    dx = x - oasis.center_x
    dz = z - oasis.center_z
    d = np.sqrt(dx * dx + dz * dz)
    f = np.clip(1.0 - d / oasis.radius, 0.0, 1.0)
    f = f * f
    return np.where(d < oasis.radius, h - oasis.depth * f, h)


def apply_harbor(h, x, z, harbor):
    """Cut the harbor rectangle down to sea level with an edge falloff."""
    inside = ((x >= harbor.x_min) & (x <= harbor.x_max) &
              (z >= harbor.z_min) & (z <= harbor.z_max))
    edge = np.minimum(np.minimum(x - harbor.x_min, harbor.x_max - x),
                      np.minimum(z - harbor.z_min, harbor.z_max - z))
    f = np.clip(edge / harbor.margin, 0.0, 1.0)
    f = f * f
    return np.where(inside, _lerp(h, 0.0, f), h)


_CARVE_HANDLERS = {
    'river': apply_river,
    'oasis': apply_oasis,
    'harbor': apply_harbor,
}


# ===================================================================
# HeightProfile
# ===================================================================

class HeightProfile(object):
    """
    Elevation function for one empire.

    Instances are cheap to query and hold no mutable state beyond the
    noise permutation tables built at construction time.
    """

    def __init__(self, empire):
        """
        Args:
            empire: EmpireProfile, or anything resolve_empire() accepts
                    (key, display name, colour alias, numeric id).
        """
        self.profile = resolve_empire(empire)
        self._base = NoiseSampler(self.profile.base)
        self._features = [(NoiseSampler(f.noise), f)
                          for f in self.profile.features]
        self._detail = NoiseSampler(self.profile.detail)

        min_x, max_x, min_z, max_z = self.profile.extent
        self._origin = (min_x, min_z)
        self._span = (max_x - min_x, max_z - min_z)

    @property
    def name(self):
        return self.profile.key

    def natural_height(self, x, z):
        """Base + gated feature layers + detail, before plateau and carves."""
        p = self.profile
        nx = (x - self._origin[0]) / self._span[0]
        nz = (z - self._origin[1]) / self._span[1]

        h = (self._base.sample(x, z) + 1.0) * 0.5 * p.base_amplitude
        for sampler, feature in self._features:
            gate = gate_factor(feature.gate, nx, nz)
            h = h + gate * feature.amplitude * (sampler.sample(x, z) + 1.0) * 0.5
        h = h + self._detail.sample(x, z) * p.detail_amplitude
        return h

    def height(self, x, z):
        """
        Final elevation at world (*x*, *z*).

        Accepts scalars or numpy arrays; always >= 0.
        """
        scalar = np.ndim(x) == 0 and np.ndim(z) == 0
        x = np.asarray(x, dtype=np.float64)
        z = np.asarray(z, dtype=np.float64)

        h = self.natural_height(x, z)
        h = apply_village_plateau(h, x, z, self.profile.village)
        for carve in self.profile.carves:
            h = _CARVE_HANDLERS[carve.kind](h, x, z, carve)
        h = np.maximum(h, 0.0)

        if scalar:
            return float(h)
        return h

    __call__ = height


_PROFILE_CACHE = {}


def get_height_profile(empire):
    """Return a shared HeightProfile for *empire* (built on first use)."""
    profile = resolve_empire(empire)
    cached = _PROFILE_CACHE.get(profile.key)
    if cached is None:
        log.debug("Building height profile for empire '%s'", profile.key)
        cached = HeightProfile(profile)
        _PROFILE_CACHE[profile.key] = cached
    return cached


def height(empire, x, z):
    """Elevation of *empire*'s terrain at world (*x*, *z*)."""
    return get_height_profile(empire).height(x, z)
