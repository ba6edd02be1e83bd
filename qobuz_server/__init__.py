"""
qobuz-server: a server-side acquisition queue for Qobuz releases.
"""

__version__ = "0.3.0"
