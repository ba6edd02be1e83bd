"""
Shared helpers for formatting catalog data and building file paths.
"""
