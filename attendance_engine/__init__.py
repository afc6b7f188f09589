"""School administration — attendance and calendar resolution engine."""

__version__ = "1.0.0"
