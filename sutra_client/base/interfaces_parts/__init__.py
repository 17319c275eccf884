"""One-protocol-per-file parts for the client's boundary interfaces."""
