"""partition-rj: split/merge reversible-jump moves over grouped parameters."""

from .states import *
from .random_source import *
from .split_merge import *
from .masked_prior import *
from .selector import *

__all__ = [name for name in globals() if not name.startswith("_")]
