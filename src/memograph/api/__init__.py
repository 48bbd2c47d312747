"""HTTP surface for the memory graph engine."""
