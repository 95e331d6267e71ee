"""
scorelab: ad-hoc warehouse sampling, linear models and in-database scoring.
"""

__version__ = "1.0.0"
