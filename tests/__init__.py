"""
Tests package - Test suite for the APIcast operator.

Contains:
- unit/: Unit tests for individual components, run against an in-memory
  object store
- fixtures/: Sample APIcast resources and secrets
"""
