"""Core engine: configuration, logging, agents and workflows."""
