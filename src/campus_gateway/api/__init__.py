"""
campus_gateway.api

HTTP API package (FastAPI).

Responsibilities:
- App factory and routers.
- Uniform error envelope.
"""

# Package marker; see `campus_gateway.api.app.create_app`.
