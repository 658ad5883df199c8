"""Domain models and exceptions shared by the simulation engine."""
