"""Concrete adapters for the remote collection and attachment storage ports."""
