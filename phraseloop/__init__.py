"""phraseloop: caption phrases for looped listening practice."""

__version__ = "0.1.0"
