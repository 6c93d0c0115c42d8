"""Domain Events: notable occurrences in the resilience layer."""
