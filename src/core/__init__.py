"""
Core domain models, decimal primitives, errors and contracts.

This module contains the foundational building blocks of the sales line
calculator that are independent of how the calculator is configured.
"""
