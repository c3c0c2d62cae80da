"""TypoGuard - brand impersonation detection and takedown tracking."""

__version__ = "0.1.0"
