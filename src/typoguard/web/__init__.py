"""TypoGuard web API."""
