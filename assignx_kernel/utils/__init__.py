"""Small pure helpers shared by kernel services."""
