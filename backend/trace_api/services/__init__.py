"""
Application services.

Router (thin) → Service (business logic) → Repository (data access) → Model
"""
