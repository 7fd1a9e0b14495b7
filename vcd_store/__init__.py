"""REST API for a VCD rental and sales storefront."""

__version__ = "1.0.0"
