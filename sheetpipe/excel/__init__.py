"""Workbook sheet rendering and extraction."""
