"""Keystone - authenticated, role-gated CRUD backend."""

__version__ = "0.1.0"
