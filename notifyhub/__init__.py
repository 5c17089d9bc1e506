"""notifyhub: notification consolidation and delivery decisions.

The package intentionally re-exports nothing; import from the layer that
owns a concept (``notifyhub.application.use_cases.notifications`` for the
orchestrator, ``notifyhub.domain.entities`` for the data types).
"""
