"""Cross-module building blocks: domain events and the in-process bus."""
