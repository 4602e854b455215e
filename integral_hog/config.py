"""
Configuration for Integral HOG
"""

import logging
import os
from multiprocessing import cpu_count

from dotenv import load_dotenv

load_dotenv()

# Descriptor Defaults
DEFAULT_CELL_SIZE = (8, 8)  # (width, height) in pixels
DEFAULT_BLOCK_SIZE = (16, 16)
DEFAULT_BLOCK_STRIDE = (8, 8)
DEFAULT_N_BINS = 9
DEFAULT_MAGNITUDE = 'identity'
DEFAULT_BINNING = 'unsigned'
DEFAULT_BLOCK_NORM = 'l2-hys'
DEFAULT_CLIP_NORM = 0.2

# Gradient Stencils
DEFAULT_INTERIOR_STENCIL = 'two-point'
DEFAULT_LOWER_STENCIL = 'forward'
DEFAULT_UPPER_STENCIL = 'backward'

# Threading (batched feature extraction)
NUM_THREADS = int(os.getenv('INTEGRAL_HOG_NUM_THREADS', cpu_count()))

# Logging
DEFAULT_LOG_LEVEL = 'WARNING'


def parse_log_level(name):
    """Upper-cased logging level name; unknown names fall back to WARNING."""
    name = str(name).upper()
    if not isinstance(logging.getLevelName(name), int):
        return DEFAULT_LOG_LEVEL
    return name


LOG_LEVEL = parse_log_level(os.getenv('INTEGRAL_HOG_LOG_LEVEL', DEFAULT_LOG_LEVEL))

logging.getLogger('integral_hog').setLevel(LOG_LEVEL)
