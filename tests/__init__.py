"""
Scholar Harvester Tests Package

This package contains all tests for the harvester, organized into the following categories:

- unit_tests: Tests for individual functions/classes of the harvesting core
- config_tests: Tests for configuration and environment settings
- fixtures: Saved Google Scholar pages the extraction tests run against
"""
