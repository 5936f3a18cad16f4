"""
FastAPI RESTful API for the Personal Library.

This module provides a REST API for:
- User registration and login with bearer tokens
- Uploading and managing owned books
- Public listing of all books
- Per-user favorites
"""
