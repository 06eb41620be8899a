# src/conftest.py
"""
Root pytest configuration.

Loaded before any test module or the sequel package conftest, so the test
environment is selected before sequel.config reads it.
"""

import os

# Set environment BEFORE importing any sequel modules
os.environ["SEQUEL_ENV"] = "test"
