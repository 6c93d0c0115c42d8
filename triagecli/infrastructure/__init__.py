"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (AI provider APIs, the file
system cache, configuration, the console) by implementing the interfaces
defined in the domain layer. Also holds the resilience primitives.
"""
