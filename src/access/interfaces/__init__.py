"""
Access Interfaces Layer
=======================

FastAPI dependencies that turn the Authorization header into an Actor.
"""

from src.access.interfaces.dependencies import get_current_actor, actor_from_token

__all__ = ["get_current_actor", "actor_from_token"]
