"""
Shared API
==========

Middleware, exception handlers and the response envelope.
"""
