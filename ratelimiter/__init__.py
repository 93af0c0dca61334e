"""Per-identity admission control with fixed-window counting and lockout."""

__version__ = "0.1.0"
