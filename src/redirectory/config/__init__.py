"""
Configuration management for redirectory.

Contains the Pydantic settings and the cached accessor used by the CLI
and the application factory.
"""
