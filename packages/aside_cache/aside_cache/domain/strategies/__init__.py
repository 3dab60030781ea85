"""Domain strategy implementations.

This module contains concrete eviction policies and the factory that
selects one from an ``EvictionPolicyType``.
"""

from __future__ import annotations

from aside_cache.domain.enums import EvictionPolicyType
from aside_cache.domain.interfaces.eviction_policy import EvictionPolicy

from .lfu import LFUEvictionPolicy
from .lru import LRUEvictionPolicy

_POLICIES: dict[EvictionPolicyType, type[EvictionPolicy]] = {
    EvictionPolicyType.LRU: LRUEvictionPolicy,
    EvictionPolicyType.LFU: LFUEvictionPolicy,
}


def create_eviction_policy(policy_type: EvictionPolicyType | str) -> EvictionPolicy:
    """Build a fresh eviction policy for the given type.

    Args:
        policy_type: Enum member or its string value (case-insensitive)

    Returns:
        A new, empty eviction policy

    Raises:
        ValueError: If the policy type is unknown
    """
    if isinstance(policy_type, str) and not isinstance(policy_type, EvictionPolicyType):
        policy_type = EvictionPolicyType(policy_type.upper())
    return _POLICIES[policy_type]()


__all__ = ["LFUEvictionPolicy", "LRUEvictionPolicy", "create_eviction_policy"]
