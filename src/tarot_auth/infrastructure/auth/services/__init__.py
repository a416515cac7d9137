"""Authentication services."""

from .account_service import AccountService
from .auth_orchestrator import AuthOrchestrator

__all__ = ["AccountService", "AuthOrchestrator"]
