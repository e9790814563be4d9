"""Auto-login client for Wi-MESH style captive portals."""

__version__ = "0.2.0"
