"""
Story services: embedding providers, vector index, search and CRUD.
"""
