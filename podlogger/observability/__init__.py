"""Logging and metrics for pod-logger."""
