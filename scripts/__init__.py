# =============================================================================
# Lens Overlay Protocol - Developer Scripts
# =============================================================================
