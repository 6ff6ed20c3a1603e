"""
Feature flag exporter service package.
"""
