"""Clinic appointment and queue management backend."""

__version__ = "0.1.0"
