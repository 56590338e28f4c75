"""
Core command pipeline and model providers.
"""
