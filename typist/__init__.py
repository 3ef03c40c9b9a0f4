"""Paced typist package: types queued text into the focused application."""

__version__ = "0.1.0"
