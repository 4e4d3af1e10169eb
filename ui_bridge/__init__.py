"""
HTTP bridge between a rendering layer and the voice engine.

Exposes the mounted screen's phase snapshot, the manual UI actions and a
read API over stored events.
"""
