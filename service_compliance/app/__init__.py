"""
Compliance Service application.
"""
