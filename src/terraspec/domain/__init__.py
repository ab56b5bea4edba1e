"""
terraspec — domain layer

File: src/terraspec/domain/__init__.py
Last updated: 2026-10-19

Purpose
- Value types and errors shared by every engine component.
- Kept free of IO and of imports from the rest of the package.
"""
