"""
Nodesmith - Ethereum node setup generator
"""

__version__ = "0.1.0"

from .core import NodeSetup
from .errors import NodesmithError

__all__ = ["NodeSetup", "NodesmithError"]
