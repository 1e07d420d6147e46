"""Configuration, errors, logging and database plumbing."""
