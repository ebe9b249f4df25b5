"""Domain layer - entities, enums, events and exceptions."""
