"""State/store layer.

This package is the single source of truth for the chain, subsystem and
layer model reconciled from broker messages and local edits.
"""
