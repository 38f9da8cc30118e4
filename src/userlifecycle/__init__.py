"""User account lifecycle batch job.

Deactivates expired and stale user accounts with an audit trail and
notifies account contacts ahead of expiration.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
