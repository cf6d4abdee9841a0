"""
Test Suite for the Pattern Engine

Unit tests per component plus end-to-end engine and HTTP boundary tests.
"""
