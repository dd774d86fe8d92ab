"""Federated identity and session integrity service for SafeNode."""

__version__ = "0.1.0"
