#!/usr/bin/env python3
"""
Test suite for the match scoring engine.

    # Run all tests
    python -m pytest tests/ -v

    # Using unittest for the TestCase-based modules
    python -m unittest discover tests -v

No external services are needed: Redis, RQ and the OpenAI client are mocked,
and SQL tests run against in-memory SQLite.
"""
