"""Fingerprint - device identity and spoofing detection."""

from shareguard.fingerprint.generator import FingerprintGenerator, compute_device_id

__all__ = ["FingerprintGenerator", "compute_device_id"]
