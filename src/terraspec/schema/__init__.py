"""Attribute schemas: field specs, validation, invariants and the YAML catalog."""
