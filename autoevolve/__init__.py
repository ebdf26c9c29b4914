"""autoevolve - autonomous experimentation and safe rollout engine."""

__version__ = "1.0.0"
