"""Piano CRM - a single-instructor studio dashboard backend.

This package provides the HTTP API, Gmail sync, email sending and AI
co-pilot drafting behind a piano-teaching business CRM.
"""

__version__ = "0.1.0"

from piano_crm.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
