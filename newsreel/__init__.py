"""Newsreel: turn news topics into published videos on a schedule."""

__version__ = "0.1.0"
