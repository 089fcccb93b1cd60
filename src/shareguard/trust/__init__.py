"""Trust - device trust scoring."""

from shareguard.trust.signals import DeviceSignals
from shareguard.trust.scorer import TrustScorer, is_private_address, trust_level

__all__ = ["DeviceSignals", "TrustScorer", "is_private_address", "trust_level"]
