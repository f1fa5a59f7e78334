"""
Capture Analysis service package.

Design intent:
- Turn short voice answers into dimension-level personality evidence.
- Keep GCP access (signing/storage/speech) separate from the deterministic scorer.
- Serve the stable capture contract consumed by the mobile client.
"""

__version__ = "0.1.0"
