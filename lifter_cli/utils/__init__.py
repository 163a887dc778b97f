"""Small helpers shared across layers: paths, formatting and schema validation."""
