"""Watch a scanner drop folder and file each document by its extracted metadata."""

__version__ = "0.1.0"
