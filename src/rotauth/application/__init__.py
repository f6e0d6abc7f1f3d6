"""Application layer: orchestration services built on the domain."""
