"""Risk scoring and network indexing for decentralized forum publications."""

__version__ = "0.1.0"
