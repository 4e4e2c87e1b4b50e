"""HTTP transport for the risk engine."""
