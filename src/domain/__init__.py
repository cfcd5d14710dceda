"""
Domain Layer - Pure Business Logic

This layer contains:
- Entities: Core business objects with identity
- Value Objects: Immutable objects without identity
- Services: Domain logic that doesn't fit in entities

No external dependencies allowed in this layer.
"""
