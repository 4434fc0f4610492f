"""
Resolution Engine component.

Public entry point composing the registry, sessions, scanner and resolver.
"""

from comlink.engine.engine import ResolutionEngine, create_engine

__all__ = ["ResolutionEngine", "create_engine"]
