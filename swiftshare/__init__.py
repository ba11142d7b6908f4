"""
SwiftShare: discover peers on the LAN and send them a file over raw TCP.
"""

__version__ = "1.0.0"
