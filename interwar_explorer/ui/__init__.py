"""Flask API over the explorer core."""
