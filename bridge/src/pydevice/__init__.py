"""Host-side bridge for devices implemented as Python scripts."""

__version__ = "0.1.0"
