"""PyTorch integration for qpconduit."""

from .qplayer import QPFunction

__all__ = ["QPFunction"]
