"""Field Room - shared real-time room for human and AI participants."""

__version__ = "1.0.0"
