"""
chatlink: lifecycle management for a long-lived messaging client session.
"""

__version__ = "0.1.0"
