# =============================================================================
# Lens Overlay Protocol - Shared Package
# =============================================================================
# Message models used by both sides of the protocol: geometry value types and
# the request, interaction, overlay object and telemetry schemas.
# =============================================================================
