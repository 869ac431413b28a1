"""
Integration test harness for the ticket sales service.

The harness launches the service jar as a subprocess, drives it through its
HTTP API with simulated customers and audits the answers.
"""

__version__ = "0.1.0"
