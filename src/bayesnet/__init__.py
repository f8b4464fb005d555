"""
Monte Carlo inference over binary Bayesian networks.

Modules:
    models - Node / CPT entry dataclasses and result types
    errors - Exception hierarchy
    bit_set - 256-bit presence set for one sample
    encoder - Validation, topological ordering and byte encoding
    reader - Cursor-based decoding of the encoded buffer
    sampler - One ancestral-sampling pass with optional intervention
    entropy - Per-query generator seeding
    queries - Marginals, interventions and ancestor sensitivity
    validation - Authoring-time CPT coverage checks
    fingerprint - Canonical network fingerprint and probability formatting
    config - Settings from config/inference.yaml and the environment
    cli - Command-line interface entrypoints
"""

from . import models
from . import errors
from . import bit_set
from . import encoder
from . import reader
from . import sampler
from . import entropy
from . import queries
from . import validation
from . import fingerprint
from . import config

__version__ = "1.0.0"
