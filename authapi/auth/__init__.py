"""
Authentication package.

This package provides:
- Username and password validation
- Token issuing and verification
- Rate limiting of login, registration and protected access
- The authorization gate for protected routes
"""
