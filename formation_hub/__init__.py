"""
Formation Hub — share, vote on and search game team formations.
"""

__version__ = "1.0.0"
