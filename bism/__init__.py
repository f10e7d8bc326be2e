"""BISM EERR - Income statement reporting core"""

__version__ = "1.0.0"
