"""Application services orchestrating repositories and domain logic."""
