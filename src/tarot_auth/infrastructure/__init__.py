"""Infrastructure layer: persistence, hashing, tokens, HTTP surface and configuration."""
