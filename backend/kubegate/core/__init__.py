"""Cross-cutting pieces: logging, request context, token handling and the access gate."""
