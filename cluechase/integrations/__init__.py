"""cluechase.integrations: storage and outbound HTTP for submission evidence.

All outbound HTTP calls go through a fetcher in this package, never via
bare `requests` calls in services or blueprints.

Current modules:
  evidence_storage: upload backends (LocalEvidenceStorage) and the photo archive
"""
