"""One-class-per-file parts for cooperative cancellation."""
