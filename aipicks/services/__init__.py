"""Services coordinating providers, the prediction engine and the cache."""
