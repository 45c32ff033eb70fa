"""Cross-cutting pieces: errors, response envelope, logging."""
