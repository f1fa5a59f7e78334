"""
Google Cloud access boundary for Capture Analysis.

Design intent:
- Resolve identity and tokens through google-auth; call IAM/Storage/Speech over REST
  with one shared async client.
- Classify failures at the edge (not found vs transient vs empty transcript).
- Keep handlers free of wire details.
"""

from .base import GCPRequestError
from .identity import GoogleAuthIdentity, IdentityProvider, build_credentials
from .signer import SignedUploadUrl, SigningError, UploadUrlSigner, V4SigningPlan, prepare_signed_put
from .speech import EmptyTranscriptError, SpeechTranscriber, TranscriptionError
from .storage import ObjectMetadata, ObjectNotFoundError, ObjectProbeError, ObjectValidator

__all__ = [
    "GCPRequestError",
    "IdentityProvider",
    "GoogleAuthIdentity",
    "build_credentials",
    "SignedUploadUrl",
    "SigningError",
    "UploadUrlSigner",
    "V4SigningPlan",
    "prepare_signed_put",
    "EmptyTranscriptError",
    "SpeechTranscriber",
    "TranscriptionError",
    "ObjectMetadata",
    "ObjectNotFoundError",
    "ObjectProbeError",
    "ObjectValidator",
]
