"""Native engine adapters."""
