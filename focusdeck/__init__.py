"""focusdeck: proposes a small, bounded set of tasks for right now."""

__version__ = "0.1.0"
