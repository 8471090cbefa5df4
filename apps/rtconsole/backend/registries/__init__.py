"""
Registries Package
==================

Central location for agent registries.

Structure:
    - agentstore/: Agent roster model and YAML agent sets
"""

__all__ = ["agentstore"]
