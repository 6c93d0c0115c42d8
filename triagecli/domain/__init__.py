"""Domain Layer: errors, models, interfaces and events shared by all layers."""
