"""Ingestion infrastructure: graph sink adapters and structlog probes."""
