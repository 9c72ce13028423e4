# Middleware package init
"""
StackIt Backend — Middleware Package
=====================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit: reject write floods before any processing
    2. Request ID: correlation id for logs and error bodies
    3. Logging: access line with status and duration
"""
