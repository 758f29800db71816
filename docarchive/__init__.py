"""Document archive service: archive/restore of documents and compiled volumes."""

__version__ = "0.1.0"
