"""
Use Cases Package.

Each use case is a self-contained module with its own:
- domain/: Pure business logic (models, policies, services)
- Repository implementations for its data
- A workflow that wires the domain to repositories and external services

Available use cases:
- returns: Fare quotes and delivery settlement for return pickups

Architecture:
Each use case follows the layered architecture pattern defined in core/.
"""

from use_cases.returns import build_workflow, SettlementWorkflow

__all__ = [
    "build_workflow",
    "SettlementWorkflow",
]
