"""Phone-verification login and session tokens for Security Patrol field personnel."""

__version__ = "1.0.0"
