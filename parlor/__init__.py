"""
Parlor POS core.

Credential, session and local/remote data-access layer for a single-outlet
inventory and point-of-sale application.  Wire the dependency graph with
:func:`parlor.services.create_services`.
"""

__version__ = "0.1.0"
