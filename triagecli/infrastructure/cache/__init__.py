"""Caching Service Implementation.

Provides the TTL-based JSON file cache used in front of provider calls.
Bounded Context: Cache Management
"""
