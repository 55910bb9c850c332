"""
Version import for the layerfix backend.

Single source of truth: layerfix/_version.py
"""

from layerfix._version import __version__, __release_date__
