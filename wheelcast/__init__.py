"""
Wheelcast — multi-tenant spin wheel with realtime, owner-scoped room sync.
"""

__version__ = "1.0.0"
