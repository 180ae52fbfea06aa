# =============================================================================
# Lens Overlay Protocol - Client Package
# =============================================================================
# This package contains the overlay-client components responsible for request
# sequencing, building interaction requests and recording preprocessing
# telemetry.
# =============================================================================
