"""
campus_gateway.api.routers

Router package; each module exposes a `router`.
"""
