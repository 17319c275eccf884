"""One-class-per-file parts for the canonical DTOs."""
