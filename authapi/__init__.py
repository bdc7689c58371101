"""
JWT authentication API.

Registers users, logs them in with username/password and issues signed,
time-bounded bearer tokens that protected routes verify.
"""
__version__ = "0.1.0"
