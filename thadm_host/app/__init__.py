"""Application wiring for the thadm recorder host."""
