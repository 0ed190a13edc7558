"""
Results core schema definitions

Any schema has a base name and optionally an extended name:
 * ``Payload`` for the validated body of incoming requests
 * ``Item`` or ``Collection`` for the envelopes of outgoing responses
For example, there are schemas ``Result``, ``ResultPayload``,
``ResultItem`` and ``ResultCollection`` to represent results.

This package also contains the ``config`` module, but it's not
exported by default, since it's currently only used internally.
"""

from .bases import *
from .errors import *
