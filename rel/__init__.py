"""Release orchestration: step sequencing, infrastructure ordering and environment policy."""

__version__ = "0.1.0"
