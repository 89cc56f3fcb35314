"""Calendar core for clinical-practice scheduling."""

__version__ = "0.1.0"
