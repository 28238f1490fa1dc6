"""Zero-knowledge proof generation for the Panagram word game."""

__version__ = "0.1.0"
