"""AI-assisted insurance claims intake pipeline."""

__version__ = "0.1.0"
