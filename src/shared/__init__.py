"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded contexts
(tickets, organizations, SLA).

Architecture Pattern: Modular Monolith
- Each module (tickets, organizations, sla) is a bounded context
- Shared kernel contains only generic infrastructure
- Domain models live within each module

DO NOT add ticket, organization or SLA business logic to shared kernel.
"""

__version__ = "1.0.0"
