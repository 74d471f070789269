"""Per-worker uniform random streams.

Every parallel task (one image row in the renderer) owns one slot in a
Taichi state field and draws only from that slot. Slots are never shared,
so no locking is needed and the draw sequence of a task is independent of
how the Taichi runtime schedules rows onto threads.

Seeding expands one master seed into one 32-bit sub-seed per stream with
``numpy.random.SeedSequence``. The same seed and stream count always give
the same streams. Changing the stream count changes every sub-seed.

Each slot advances with a 32-bit xorshift generator, which is small enough
to live inside a kernel.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.core.rng import seed_rng_streams, draw_uniforms
    >>> seed_rng_streams(num_streams=4, seed=1234)
    >>> draw_uniforms(stream=0, count=3).shape
    (3,)
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti

from spherept.core.ray import real

logger = logging.getLogger(__name__)

# Maximum number of independent streams (one per image row)
MAX_RNG_STREAMS = 2048

# Master seed used when the caller does not provide one
DEFAULT_SEED = 1234

# xorshift has an all-zero fixed point; zero sub-seeds are replaced by this
_NONZERO_STATE = 0x9E3779B9

# Generator state, one u32 word per stream
_rng_state = ti.field(dtype=ti.u32, shape=MAX_RNG_STREAMS)
_num_streams = ti.field(dtype=ti.i32, shape=())


def derive_stream_seeds(num_streams: int, seed: int = DEFAULT_SEED) -> npt.NDArray[np.uint32]:
    """Expand a master seed into one nonzero 32-bit sub-seed per stream.

    Args:
        num_streams: Number of streams to seed (1 to MAX_RNG_STREAMS).
        seed: The master seed.

    Returns:
        Array of shape (num_streams,) with dtype uint32.

    Raises:
        ValueError: If num_streams is outside [1, MAX_RNG_STREAMS].
    """
    if num_streams < 1 or num_streams > MAX_RNG_STREAMS:
        raise ValueError(
            f"num_streams must be in [1, {MAX_RNG_STREAMS}], got {num_streams}"
        )

    seeds = np.random.SeedSequence(seed).generate_state(num_streams, dtype=np.uint32)
    seeds[seeds == 0] = _NONZERO_STATE
    return seeds


def seed_rng_streams(num_streams: int, seed: int = DEFAULT_SEED) -> None:
    """Seed the first ``num_streams`` stream slots from a master seed.

    Slots beyond ``num_streams`` are reset to a fixed nonzero state so that
    they stay usable but are never reported as seeded.

    Args:
        num_streams: Number of streams the caller will draw from.
        seed: The master seed.

    Raises:
        ValueError: If num_streams is outside [1, MAX_RNG_STREAMS].
    """
    seeds = derive_stream_seeds(num_streams, seed)

    state = np.full(MAX_RNG_STREAMS, _NONZERO_STATE, dtype=np.uint32)
    state[:num_streams] = seeds
    _rng_state.from_numpy(state)
    _num_streams[None] = num_streams

    logger.debug("Seeded %d RNG streams from master seed %d", num_streams, seed)


def get_rng_stream_count() -> int:
    """Get the number of streams seeded by the last seed_rng_streams call."""
    return int(_num_streams[None])


def get_rng_state(stream: int) -> int:
    """Get the raw generator word of one stream (for inspection in tests)."""
    return int(_rng_state[stream])


def check_stream(stream: int) -> None:
    """Raise if ``stream`` is not one of the seeded slots.

    Raises:
        RuntimeError: If no streams have been seeded.
        ValueError: If stream is outside the seeded range.
    """
    count = get_rng_stream_count()
    if count == 0:
        raise RuntimeError("RNG streams not seeded. Call seed_rng_streams() first.")
    if stream < 0 or stream >= count:
        raise ValueError(f"Stream {stream} is outside the seeded range [0, {count})")


@ti.func
def next_uniform(stream: ti.i32) -> real:
    """Draw the next uniform variate in [0, 1) from one stream.

    Only the task that owns ``stream`` may call this; the slot is updated
    without synchronisation.

    Args:
        stream: The stream slot owned by the calling task.

    Returns:
        A uniform variate in [0, 1) with 31 bits of resolution.
    """
    s = _rng_state[stream]
    s ^= s << 13
    s ^= ti.bit_shr(s, 17)
    s ^= s << 5
    _rng_state[stream] = s
    return ti.cast(ti.bit_shr(s, 1), real) * (1.0 / 2147483648.0)


@ti.kernel
def _fill_uniforms(stream: ti.i32, out: ti.types.ndarray(dtype=ti.f64, ndim=1)):
    ti.loop_config(serialize=True)
    for i in range(out.shape[0]):
        out[i] = next_uniform(stream)


def draw_uniforms(stream: int, count: int) -> npt.NDArray[np.float64]:
    """Draw ``count`` consecutive variates from one stream.

    Args:
        stream: A seeded stream slot.
        count: Number of variates to draw.

    Returns:
        Array of shape (count,) with dtype float64, in draw order.
    """
    check_stream(stream)
    out = np.zeros(count, dtype=np.float64)
    if count > 0:
        _fill_uniforms(stream, out)
    return out
