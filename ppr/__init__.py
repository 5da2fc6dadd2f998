"""
ppr: themed wallpapers from SVG templates and base16/base24 palettes.
"""
__version__ = "0.1.0"
