"""Application layer - services orchestrating the sync pipeline."""
