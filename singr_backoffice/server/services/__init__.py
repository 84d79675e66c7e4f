"""Service layer and request dependencies."""
