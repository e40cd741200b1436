"""BrightChat: chat widget backend and client."""

__version__ = "1.0.0"
