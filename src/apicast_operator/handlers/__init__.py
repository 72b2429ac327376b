"""
Handlers package - kopf event handlers for APIcast resources.

Importing ``apicast_operator.handlers.apicast`` registers the handlers
with kopf.
"""
