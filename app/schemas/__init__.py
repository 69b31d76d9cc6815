"""
Schemas module - Request/Response schemas for API endpoints.

All schemas and enums live in app.schemas.schemas.
"""
