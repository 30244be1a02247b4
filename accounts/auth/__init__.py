"""Authentication and session components"""
