"""
Content access layer: resilient HTTP client and multi-entity cache stores.
"""
