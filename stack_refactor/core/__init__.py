"""Core building blocks: configuration, logging, templates, digests and providers."""
