"""Protocol definitions: sources, compiler adapter and data model."""
