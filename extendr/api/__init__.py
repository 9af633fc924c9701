"""
FastAPI server module for Extendr.

Importing ``extendr.api.main`` loads configuration and builds the app.
"""
