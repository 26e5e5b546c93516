"""Domain services: staleness maintenance, enrichment review, linked import."""
