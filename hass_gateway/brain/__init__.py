"""Entity normalization engine ("brain sweep").

Classifies stored entities, generates intent candidates for them, and
records an audit row per sweep.  Import from the submodules:
``hass_gateway.brain.sweep`` for the orchestrator,
``hass_gateway.brain.engine`` for the per-entity steps.
"""
