"""Agent descriptors, loading and tier resolution."""
