"""
APE command core.

Turns ``@domain:action`` commands, ``/`` system commands and free-form
``@domain`` requests into executed domain actions.
"""

__version__ = "0.1.0"
