"""ProTask team task planning and workflow runtime."""

__version__ = "1.0.0"
