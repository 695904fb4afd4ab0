"""Session wiring and the service functions the API layer calls."""
