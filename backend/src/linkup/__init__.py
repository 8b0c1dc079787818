"""Shared libraries for the Linkup backend."""
