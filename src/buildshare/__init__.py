"""BuildShare: shareable, time-limited views of construction projects."""

__version__ = "0.1.0"
