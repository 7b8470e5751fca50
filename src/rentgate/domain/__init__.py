"""Domain layer: value objects, DTOs, ports and exceptions."""
