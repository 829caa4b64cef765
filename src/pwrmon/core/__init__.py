"""Domain logic: normalization, alerting, aggregation and cost estimation."""
