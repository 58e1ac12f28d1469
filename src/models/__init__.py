"""
SQLAlchemy Models for the Brokerage Back Office.

This module exports all database models for the application.
"""

from src.models.base import Base, TimeStampedModel, UUIDModel
from src.models.user import User, UserClientAccess
from src.models.client import Client, Insurer
from src.models.affiliate import Affiliate
from src.models.policy import Policy, PolicyAffiliate
from src.models.claim import Claim, ClaimInvoice, ClaimReprocess
from src.models.invoice import Invoice, InvoicePolicy
from src.models.audit import AuditLog

__all__ = [
    # Base
    "Base",
    "TimeStampedModel",
    "UUIDModel",
    # Identity
    "User",
    "UserClientAccess",
    # Parties
    "Client",
    "Insurer",
    "Affiliate",
    # Lifecycle entities
    "Policy",
    "PolicyAffiliate",
    "Claim",
    "ClaimInvoice",
    "ClaimReprocess",
    "Invoice",
    "InvoicePolicy",
    # Audit
    "AuditLog",
]
