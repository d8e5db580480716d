"""
covrelay - Per-component coverage collection and reporting.

Discovers components under a source tree, runs an external coverage collector
against each one in isolation, uploads the reports to a hosted coverage service
and writes a status badge per component.

Usage:
    covrelay run                 # Collect, upload and badge every component
    covrelay discover            # List discovered components
    covrelay badge <component>   # Emit a single badge
    covrelay init                # Write a sample covrelay.yaml
"""

__version__ = "0.1.0"
