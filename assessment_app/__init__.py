"""
Innovation Assessment Client - state synchronization core.
"""

__version__ = "1.0.0"
