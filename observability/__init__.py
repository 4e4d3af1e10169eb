"""
Structured event emission and in-memory event storage.
"""
