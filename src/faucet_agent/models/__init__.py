"""Event and metric data models."""
