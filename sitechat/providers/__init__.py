"""Concrete adapters for the interfaces in :mod:`sitechat.interfaces`."""
