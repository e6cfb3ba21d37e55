"""
Pydantic schemas for persisted and published JSON documents.
"""
