"""Core logic for VitalVision patient monitoring.

This package contains vital-sign alerting and reminder scheduling,
isolated from the persistence, auth and AI integrations for easy testing.
"""
