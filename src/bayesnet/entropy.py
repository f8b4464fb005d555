"""Seed acquisition for the per-query random generator."""

import logging
import os
from typing import Optional

import numpy as np

from .errors import EntropyUnavailableError

logger = logging.getLogger(__name__)

SEED_BYTES = 16


def read_seed(num_bytes: int = SEED_BYTES) -> bytes:
    """Read seed bytes from the operating system.

    Raises:
        EntropyUnavailableError: if the OS randomness source fails
    """
    try:
        seed = os.urandom(num_bytes)
    except (NotImplementedError, OSError) as e:
        raise EntropyUnavailableError(f"RNG seed failed: {e}") from e
    if len(seed) != num_bytes:
        raise EntropyUnavailableError(f"RNG seed failed: got {len(seed)} of {num_bytes} bytes")
    return seed


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Create the generator for one query.

    A fixed ``seed`` gives reproducible output; otherwise 16 fresh bytes of
    OS entropy are used.
    """
    if seed is None:
        seed = int.from_bytes(read_seed(), "little")
    else:
        logger.debug(f"Using fixed seed {seed}")
    return np.random.default_rng(seed)
