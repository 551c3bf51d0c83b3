"""bundlecache - read-through cache for Steam bundle records"""

__version__ = "1.0.0"
