"""
Results core REST API

This package provides the ``Result`` resource (a user's timestamped score)
via a REST API with role-based access control and conditional requests.
"""

__version__ = "0.1.0"
