"""Utility functions for the farmstock kernel."""

from farmstock_kernel.utils.hashing import canonicalize_json, hash_audit_record, hash_payload

__all__ = ["canonicalize_json", "hash_audit_record", "hash_payload"]
