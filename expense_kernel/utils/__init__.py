"""Utility functions for the expense kernel."""

from expense_kernel.utils.hashing import canonicalize_json, hash_approval, hash_payload

__all__ = ["canonicalize_json", "hash_approval", "hash_payload"]
