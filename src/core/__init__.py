"""Core domain package for tabgrouper.

Core contains rule matching, classification, orchestration and reconciliation
without any storage, HTTP or browser-specific code, keeping the grouping logic
portable.
"""
