"""Presentation layer built on the clinic registry."""
