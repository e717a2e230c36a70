"""botgate — request-time visitor classifier and redirector."""

__version__ = "1.0.0"
