"""storeflow: workflow automation engine for point-of-sale stores."""

__version__ = "1.0.0"
