"""
Shared models for the Singr back office.

Subpackages:
- io: Pydantic request/response schemas used by the API layer
"""
