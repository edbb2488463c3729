"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from src.core.clock import Clock, SystemClock, system_clock
from src.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    AuthenticationException,
    AuthorizationException,
    ResourceNotFoundException,
    ConflictException,
    InvalidStateException,
    ConfigurationException,
    ExternalServiceException,
    NotificationException,
)

__all__ = [
    "Clock",
    "SystemClock",
    "system_clock",
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "AuthenticationException",
    "AuthorizationException",
    "ResourceNotFoundException",
    "ConflictException",
    "InvalidStateException",
    "ConfigurationException",
    "ExternalServiceException",
    "NotificationException",
]
