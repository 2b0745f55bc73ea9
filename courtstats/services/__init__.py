"""Service facades over the match store and the aggregation engine."""
