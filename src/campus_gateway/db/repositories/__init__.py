"""
campus_gateway.db.repositories

Repository package; repositories are imported directly from submodules.
"""
