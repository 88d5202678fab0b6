"""Application services for the release orchestrator.

Services implement the release workflow, dependency resolution and policy
checks on top of the catalogs (catalog/) and core primitives (core/).
"""
