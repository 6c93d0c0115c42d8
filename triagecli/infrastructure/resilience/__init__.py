"""API Resilience Implementations.

Contains the circuit breaker, the retry policy with exponential backoff and
its error classifier, and the caller that composes them with the cache.
Bounded Context: API Resilience
"""
