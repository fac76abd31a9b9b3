"""Session-aware client and admin CLI for the SteerFlux storefront API."""

__version__ = "0.1.0"
