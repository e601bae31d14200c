"""
fswatcher - Recursive directory change detection
"""
from .watch import *  # noqa: F401,F403
from .watch import __all__

__version__ = "0.1.0"
