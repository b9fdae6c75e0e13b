"""Lyriq Notes: voice memos turned into editable song structures."""

__version__ = "0.1.0"
