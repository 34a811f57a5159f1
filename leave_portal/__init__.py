"""
Leave Portal.

Web front-end for the leave management REST API.
"""

__version__ = "1.0.0"
