"""Terminal tools for operators"""
