"""
Application Layer - Producer Adapters

This layer contains:
- Adapters: Translate domain-specific measurements into engine observations
- Interfaces: The engine contract adapters depend on

Depends on domain layer only; the infrastructure layer implements the
interfaces defined here.
"""
