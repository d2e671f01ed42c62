"""
HTTP surface of the route workspace engine.
"""
