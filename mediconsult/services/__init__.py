from .store import RelationalStore

from .identity_service import IdentityProvider, Session, get_identity_provider

from .access_guard import AccessGuard

from .commit_service import CommitCoordinator, CommitResult

from .extraction_service import OpenAIExtractor

from .export_service import build_prescription_pdf, export_prescription

__all__ = [
    # Store
    "RelationalStore",
    # Identity
    "IdentityProvider",
    "Session",
    "get_identity_provider",
    "AccessGuard",
    # Consultation commit
    "CommitCoordinator",
    "CommitResult",
    # Extraction
    "OpenAIExtractor",
    # Export
    "build_prescription_pdf",
    "export_prescription",
]
