"""Scenario definitions and the replication harness for the checkout model."""
