"""E-number dictionary policies."""
from .policy import ENumberPolicy, ENumberPolicyKind, fetch_e_number_policies

__all__ = ["ENumberPolicy", "ENumberPolicyKind", "fetch_e_number_policies"]
