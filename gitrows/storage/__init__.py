"""Storage — per-key reads and staged writes in the mirror's working tree."""
