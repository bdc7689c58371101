"""
Routes that require a valid bearer token.
"""
