"""
Storage implementations for operation history.
"""

from .op_log_store import OpLogStore

__all__ = ['OpLogStore']
