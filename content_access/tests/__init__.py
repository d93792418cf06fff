"""
Tests for the content access layer.
"""
