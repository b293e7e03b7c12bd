"""AI Unk conversational backend."""

__version__ = "0.1.0"
