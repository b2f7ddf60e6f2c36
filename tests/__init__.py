"""
clickdrag test suite

Structure:
- unit/: Unit tests for individual components
- integration/: End-to-end crawls against a local HTTP server
"""
