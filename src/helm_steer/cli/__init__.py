"""Command-line interface for helm-steer."""
