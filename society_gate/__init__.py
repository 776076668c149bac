"""Society Gate - entry/exit verification service for residential societies"""

__version__ = "0.1.0"
