"""
Organization Domain Entities
============================
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class OrganizationSummary:
    """An organization with its user and live ticket counts."""
    organization: Any
    user_count: int = 0
    ticket_count: int = 0

