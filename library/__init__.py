"""
Library domain package.

This package contains:
- Principal and book models
- Password hashing and bearer token handling
- Request authentication (AuthGate)
- Ownership rules for single-book operations
- Favorites set management
- Account and book services
"""

__version__ = "1.0.0"
