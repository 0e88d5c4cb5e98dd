"""
Julia set renderer.
"""
