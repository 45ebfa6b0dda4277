"""Band portal: multi-tenant band membership, content and billing API."""

__version__ = "0.1.0"
