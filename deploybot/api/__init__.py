"""HTTP surface for deploybot."""
