"""Command line tools for the MicroCred registry."""
