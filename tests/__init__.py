"""
Test suite for the twin server.
"""
