"""
Utility modules for Pitstop
"""
from .timestamps import now_ms, ms_to_iso

__all__ = ['now_ms', 'ms_to_iso']
