"""Alpha detection and probability estimation engine for prediction markets"""

__version__ = "0.1.0"
