"""
Empire terrain profiles and default zone definitions.

Each empire (Shinsoo, Chunjo, Jinno) has one immutable EmpireProfile
describing the noise layers and shaping constants used by HeightProfile.
Profiles are plain namedtuples so they can be compared, hashed and
reused freely.

Zone ids follow the server's numbering:
    1-99:    Shinsoo (empire 0)
    100-199: Chunjo (empire 1)
    200-299: Jinno (empire 2)
    300+:    neutral / dungeons
"""

from collections import namedtuple


# ---------------------------------------------------------------------------
# Profile building blocks
# ---------------------------------------------------------------------------

NoiseLayer = namedtuple('NoiseLayer', [
    'seed', 'frequency', 'octaves', 'fractal', 'lacunarity', 'gain',
])

Gate = namedtuple('Gate', ['kind', 'lo', 'hi'])

FeatureLayer = namedtuple('FeatureLayer', ['noise', 'amplitude', 'gate'])

VillagePlateau = namedtuple('VillagePlateau', [
    'center_x', 'center_z', 'radius', 'base_height', 'wall_height',
])

RiverCarve = namedtuple('RiverCarve', [
    'kind', 'x_min', 'x_max', 'z0', 'meander_amplitude',
    'meander_frequency', 'half_width', 'bed_height',
])

OasisCarve = namedtuple('OasisCarve', [
    'kind', 'center_x', 'center_z', 'radius', 'depth',
])

HarborCarve = namedtuple('HarborCarve', [
    'kind', 'x_min', 'x_max', 'z_min', 'z_max', 'margin',
])

EmpireProfile = namedtuple('EmpireProfile', [
    'id', 'key', 'name', 'extent',
    'base', 'base_amplitude',
    'features',
    'detail', 'detail_amplitude',
    'village', 'carves',
])


def noise_layer(seed, frequency, octaves=1, fractal='fbm',
                lacunarity=2.0, gain=0.5):
    """NoiseLayer with the usual lacunarity/gain defaults."""
    return NoiseLayer(seed, frequency, octaves, fractal, lacunarity, gain)


def river(x_min, x_max, z0, half_width, bed_height=0.5,
          meander_amplitude=0.0, meander_frequency=0.0):
    return RiverCarve('river', x_min, x_max, z0, meander_amplitude,
                      meander_frequency, half_width, bed_height)


def oasis(center_x, center_z, radius, depth):
    return OasisCarve('oasis', center_x, center_z, radius, depth)


def harbor(x_min, x_max, z_min, z_max, margin):
    return HarborCarve('harbor', x_min, x_max, z_min, z_max, margin)


# ---------------------------------------------------------------------------
# Zone layout shared by all empires
# ---------------------------------------------------------------------------

REGION_SIZE = 256.0

# Regions -2..1 on both axes -> world [-512, 512)
DEFAULT_REGIONS = (-2, -2, 1, 1)

_ZONE_EXTENT = (-512.0, 512.0, -512.0, 512.0)


# ---------------------------------------------------------------------------
# Empire profiles
# ---------------------------------------------------------------------------

# Shinsoo: forested hills, mountains rising toward the north edge,
# a river running across the northern half.
SHINSOO = EmpireProfile(
    id=0,
    key='shinsoo',
    name='Shinsoo',
    extent=_ZONE_EXTENT,
    base=noise_layer(1001, 0.004, octaves=5),
    base_amplitude=18.0,
    features=(
        FeatureLayer(noise_layer(1002, 0.006, octaves=5, fractal='ridged'),
                     60.0, Gate('north', 0.55, 0.95)),
        FeatureLayer(noise_layer(1003, 0.012, octaves=3),
                     25.0, Gate('corners', 0.5, 0.9)),
    ),
    detail=noise_layer(1004, 0.08, octaves=2),
    detail_amplitude=0.8,
    village=VillagePlateau(0.0, 0.0, 48.0, 6.0, 2.5),
    carves=(
        river(-512.0, 512.0, -260.0, 18.0, bed_height=0.5,
              meander_amplitude=30.0, meander_frequency=0.01),
    ),
)

# Chunjo: open desert plains, dunes toward the south, mesas at the
# zone edges, two oases.
CHUNJO = EmpireProfile(
    id=1,
    key='chunjo',
    name='Chunjo',
    extent=_ZONE_EXTENT,
    base=noise_layer(2001, 0.003, octaves=4),
    base_amplitude=8.0,
    features=(
        FeatureLayer(noise_layer(2002, 0.015, octaves=3, gain=0.4),
                     12.0, Gate('south', 0.5, 0.9)),
        FeatureLayer(noise_layer(2003, 0.005, octaves=2, fractal='none'),
                     20.0, Gate('edges', 0.7, 0.95)),
    ),
    detail=noise_layer(2004, 0.1, octaves=2),
    detail_amplitude=0.5,
    village=VillagePlateau(0.0, 0.0, 56.0, 4.0, 2.0),
    carves=(
        oasis(-260.0, 240.0, 70.0, 9.0),
        oasis(300.0, -220.0, 45.0, 6.0),
    ),
)

# Jinno: coastal cliffs along the east edge with a harbor cut to sea
# level, rolling hills to the west, a river in the south.
JINNO = EmpireProfile(
    id=2,
    key='jinno',
    name='Jinno',
    extent=_ZONE_EXTENT,
    base=noise_layer(3001, 0.0035, octaves=4),
    base_amplitude=12.0,
    features=(
        FeatureLayer(noise_layer(3002, 0.009, octaves=4, fractal='ridged'),
                     35.0, Gate('east', 0.6, 0.9)),
        FeatureLayer(noise_layer(3003, 0.007, octaves=3),
                     15.0, Gate('west', 0.55, 0.85)),
    ),
    detail=noise_layer(3004, 0.09, octaves=2),
    detail_amplitude=0.6,
    village=VillagePlateau(0.0, 0.0, 52.0, 5.0, 3.0),
    carves=(
        harbor(330.0, 512.0, -90.0, 90.0, 40.0),
        river(-512.0, 300.0, 280.0, 14.0, bed_height=0.3,
              meander_amplitude=20.0, meander_frequency=0.015),
    ),
)

EMPIRES = {
    SHINSOO.key: SHINSOO,
    CHUNJO.key: CHUNJO,
    JINNO.key: JINNO,
}

_EMPIRE_ALIASES = {
    'red': SHINSOO.key,
    'yellow': CHUNJO.key,
    'blue': JINNO.key,
}


def resolve_empire(value):
    """
    Look up an EmpireProfile.

    Accepts an EmpireProfile, a key ("shinsoo"), a display name
    ("Shinsoo"), a colour alias ("red") or the numeric empire id (0-2).

    Raises:
        ValueError: If *value* names no known empire.
    """
    if isinstance(value, EmpireProfile):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        for profile in EMPIRES.values():
            if profile.id == value:
                return profile
        raise ValueError("Unknown empire id: {}".format(value))
    if isinstance(value, str):
        key = value.strip().lower()
        key = _EMPIRE_ALIASES.get(key, key)
        if key in EMPIRES:
            return EMPIRES[key]
    raise ValueError("Unknown empire: {!r}".format(value))


# ---------------------------------------------------------------------------
# Default zones (matches the server's hard-coded fallback zone table)
# ---------------------------------------------------------------------------

def _default_terrain():
    return {
        'mode': 'generate',
        'region_size': REGION_SIZE,
        'regions': list(DEFAULT_REGIONS),
        'samples_per_side': 128,
    }


DEFAULT_ZONES = [
    {
        'id': 1,
        'name': 'Shinsoo Village',
        'empire': SHINSOO.key,
        'scene': 'world/shinsoo/village.json',
        'terrain': _default_terrain(),
    },
    {
        'id': 100,
        'name': 'Chunjo Village',
        'empire': CHUNJO.key,
        'scene': 'world/chunjo/village.json',
        'terrain': _default_terrain(),
    },
    {
        'id': 200,
        'name': 'Jinno Village',
        'empire': JINNO.key,
        'scene': 'world/jinno/village.json',
        'terrain': _default_terrain(),
    },
]
