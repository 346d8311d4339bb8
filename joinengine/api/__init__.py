"""
Internal FastAPI surface
"""
