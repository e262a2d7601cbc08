"""
Feature modules live under this package.

Each module owns its routes and services, while reusing platform primitives
(config, storage, DB session).
"""
