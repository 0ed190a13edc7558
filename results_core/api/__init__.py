"""
Results core REST API

This package provides the API definition, the authentication
and the conditional request handling of the results core.
"""

from .api import api, create_app
