import logging

__version__ = "0.1.0"

from . import util
from . import data
from . import hmm

logging.getLogger(__name__).addHandler(logging.NullHandler())
