"""
lingoforge: round-trip localization file translation with AI-assisted batches.
"""

__version__ = "0.1.0"
