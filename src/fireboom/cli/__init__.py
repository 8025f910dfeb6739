"""
Fireboom CLI - run, develop and build a control plane project.

The entry point lives in ``fireboom.cli.main``.
"""
