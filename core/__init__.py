"""
Core Framework for the settlement service.

This module provides the extensible base classes and interfaces
that every use case builds on. The layered architecture ensures:

1. Domain Layer - Pure business rules, no I/O
2. Data Layer - Repository pattern for data access
3. Orchestration Layer - Workflows that wire domain services to repositories

Each use case follows this pattern for consistency and reusability.
"""

from .domain import (
    DomainService,
    PolicyEngine,
    Validator,
    ValidationError,
    DomainError,
    InvalidRequestError,
    ConflictError,
    NotFoundError,
    NotAuthorizedError,
)
from .data import Repository, QueryOptions, QueryResult

__all__ = [
    # Domain
    "DomainService",
    "PolicyEngine",
    "Validator",
    "ValidationError",
    # Errors
    "DomainError",
    "InvalidRequestError",
    "ConflictError",
    "NotFoundError",
    "NotAuthorizedError",
    # Data
    "Repository",
    "QueryOptions",
    "QueryResult",
]
