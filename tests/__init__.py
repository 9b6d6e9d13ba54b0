"""
Test suite for the sales line calculator

Contains:
- tests/unit/          : Unit tests for individual modules
"""
