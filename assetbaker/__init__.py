"""Offline asset baker: Aseprite sheets, PNGs and TrueType fonts to atlas pages and catalogs."""

__version__ = "0.1.0"
