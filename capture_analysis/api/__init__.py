"""
API orchestration boundary for Capture Analysis.

Design intent:
- Expose the capture contract used by the mobile client plus health/prompt reads.
- Keep authorization and body parsing explicit; map domain errors to status codes.
"""
