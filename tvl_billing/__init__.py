"""Billing engine for a travel agency back office: GST-aware bill totals and bill lifecycle."""

__version__ = "1.0.0"
