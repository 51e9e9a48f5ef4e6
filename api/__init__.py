"""HTTP surface of the aggregator."""
