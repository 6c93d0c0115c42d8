"""Domain Models: value objects, entities and result types."""
