"""OAuth token broker for OneDrive and SharePoint access on behalf of tenants."""

__version__ = "0.1.0"
