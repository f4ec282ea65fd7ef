"""Concrete adapters for the interfaces in :mod:`albumlog.interfaces`."""
