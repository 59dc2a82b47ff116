"""
restinfront: schema-driven models bound to REST resources.
"""

from restinfront.core import *  # noqa: F401,F403
from restinfront.core import __all__

__version__ = "0.1.0"
