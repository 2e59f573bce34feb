"""Gelos study core: spaced-repetition scheduling and review sessions."""

from gelos.consts import VERSION

__version__ = VERSION
