"""
APIcast Operator - A Kubernetes operator for the APIcast API gateway.

This operator converges APIcast gateway workloads to the state declared in
APIcast custom resources:
- Deployment, Service and optional Ingress per gateway
- Ownership of user provided credential and configuration secrets
- Rolling restarts when referenced secrets change
"""

__version__ = "0.1.0"
