"""Supervise configured processes with restart limits, status reporting and an HTTP control port."""

__version__ = "0.1.0"