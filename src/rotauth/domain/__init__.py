"""Domain layer: entities, services, ports and errors of the rotation authority."""
