"""
disco - put the phone down, and get nagged about it.
"""

__version__ = "0.1.0"
__logo__ = "🪩"
