"""Engineering blog feed aggregator."""
