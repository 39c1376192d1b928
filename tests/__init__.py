"""
Test suite for the Telehealth Portal.

API tests run against a SQLite database and the in-process Redis mock.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
