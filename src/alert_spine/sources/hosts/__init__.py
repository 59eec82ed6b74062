"""Host/service inventory sources."""
