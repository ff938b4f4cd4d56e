"""Connectivity signal adapters."""

from safeping.adapters.connectivity.probe_connectivity_provider import ProbeConnectivityProvider

__all__ = ["ProbeConnectivityProvider"]
