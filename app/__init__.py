"""
Placement Portal
Campus placement backend: job approval, application timelines and quiz rankings.

Architecture:
- MongoDB: every entity, one collection per aggregate (see app.db.mongodb)
- Services: domain rules (app.services), no HTTP knowledge
- Routes: thin FastAPI handlers returning the {success, message, data} envelope
"""

__version__ = "1.0.0"
