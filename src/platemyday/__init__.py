"""
PlateMyDay - AI meal planning backend.

Generates recipes and 7-day meal plans through a structured-generation
provider, streams partial results to clients, reconciles plans against the
user's recipe library, and gates generation behind credits and billing.
"""

__version__ = "1.0.0"
