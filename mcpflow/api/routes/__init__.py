"""
API Routes package.
"""
