"""Enfusion asset authoring helpers: prefab index, socket resolution, template generation."""

__version__ = "0.1.0"
