"""
Configuration package for the re-scoring console: constants, settings and
logging.
"""
from .constants import *
from .logging_config import ROOT_LOGGER_NAME, get_logger, set_level, setup_logger

__all__ = [
    # Logging
    'ROOT_LOGGER_NAME',
    'get_logger',
    'set_level',
    'setup_logger',
    # Constants (all exported via *)
]
