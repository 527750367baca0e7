"""Parsing and encoding of the text form of recurrence rules."""

from .rrule import decode, encode

__all__ = ["decode", "encode"]
