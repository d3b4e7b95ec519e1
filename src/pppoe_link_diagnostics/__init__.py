"""Diagnose degraded or failing PPPoE links."""

__version__ = "0.1.0"
