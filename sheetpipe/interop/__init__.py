"""Interoperability with other columnar formats."""
