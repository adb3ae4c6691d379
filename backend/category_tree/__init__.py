"""Per-owner category trees: ordering, validation and restructuring."""

__version__ = "1.0.0"
