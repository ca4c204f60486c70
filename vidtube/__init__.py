"""
Video platform backend package.

This package provides a FastAPI application for user accounts, JWT sessions,
channel subscriptions and watch history, with storage and database
abstractions so the same code runs against in-memory doubles or
Postgres + an S3-compatible asset bucket.
"""
