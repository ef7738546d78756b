"""
careportal - identity, session and access control for the care platform.
"""

__version__ = "0.1.0"
