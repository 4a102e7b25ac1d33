"""Terminal issue manager driving background analysis tasks."""

__version__ = "0.1.0"
