"""Channel agent: conversational access to the asset platform over WhatsApp, email and SMS."""

__version__ = "0.1.0"
