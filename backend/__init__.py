# =============================================================================
# Lens Overlay Protocol - Backend Package
# =============================================================================
# This package contains the backend-side components responsible for decoding
# incoming requests and checking request sequencing per session.
# =============================================================================
