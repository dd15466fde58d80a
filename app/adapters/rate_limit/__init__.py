"""Counter store adapters.

This package provides a small abstraction layer over the shared store that
holds window counters. Redis is the production backend; the in-memory store
serves local runs and tests without changing the rate limiter or the HTTP
layer.
"""
