"""
campus_gateway.auth

Authentication/authorization package.

Responsibilities:
- Credential issuing and verification (signed, stateless).
- Password hashing.
- FastAPI auth dependencies (Credential + RBAC).
"""

# Package marker.
