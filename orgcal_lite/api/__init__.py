"""HTTP API layer for orgcal_lite."""
