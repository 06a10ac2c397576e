"""Kubernetes bundle installer, OS detection and cloud-init script execution for hosts."""

__version__ = "0.1.0"