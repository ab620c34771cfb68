"""Domain layer - lifecycle rules independent of processes and drivers."""
