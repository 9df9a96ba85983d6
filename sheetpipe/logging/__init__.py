"""Logging setup for the sheetpipe tools."""
