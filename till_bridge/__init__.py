"""
Till Bridge — cash drawer orchestration for browser point-of-sale pages.

Talks to the local tray service over a WebSocket and opens the cash drawer
before the page's confirmation button continues the transaction.
"""

__version__ = '1.0.0'
