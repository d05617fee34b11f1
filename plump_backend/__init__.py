"""Authoritative server for Plump, a four-player bidding and trick card game."""

__version__ = "0.1.0"
