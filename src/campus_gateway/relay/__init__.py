"""
campus_gateway.relay

Streaming relay to the upstream conversational service.

Responsibilities:
- Open one outbound streaming request per client request (`upstream`).
- Copy upstream chunks to the client as they arrive (`session`).
- Guarantee the upstream connection is released however the exchange ends (`response`).
"""

# Package marker.
