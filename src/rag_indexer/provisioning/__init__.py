"""
Provisioning — one-time, idempotent schema setup for each backend.

Run it before the first ingestion against a backend::

    python -m rag_indexer.provisioning
    python -m rag_indexer.provisioning --provider postgres --provider mongodb
"""

from rag_indexer.provisioning.setup import PROVISIONERS, configured_providers, provision

__all__ = ["PROVISIONERS", "configured_providers", "provision"]
