"""Trackstar: backend de vigia e detecção de furto para rastreadores."""

__version__ = "1.0.0"
