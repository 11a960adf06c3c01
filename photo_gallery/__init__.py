"""Local photo gallery: progressive, cached thumbnails for a folder of images."""

__version__ = "0.1.0"
