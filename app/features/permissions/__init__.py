"""
Permission management feature module.

Implements resource/action Role-Based Access Control (RBAC) alongside the
access-level hierarchy.
"""
