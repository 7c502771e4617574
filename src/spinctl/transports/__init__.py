"""Transport and discovery backends."""
