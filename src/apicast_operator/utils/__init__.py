"""
Utilities package - Kubernetes access helpers for the APIcast operator.
"""
