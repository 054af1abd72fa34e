"""Azure Service Bus usage samples."""

__version__ = "1.0.0"
