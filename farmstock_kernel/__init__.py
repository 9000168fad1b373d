"""
Farmstock Kernel - inventory consistency and audit engine

Transactional business rules for an urban-farming inventory system:
- Non-negative stock under concurrent order placement
- Harvest yields propagated into inventory (corrections apply the difference)
- Append-only, hash-chained audit trail for every order transition
- Fail-closed transactions: validate, apply and log commit or roll back together
"""

__version__ = "0.1.0"
