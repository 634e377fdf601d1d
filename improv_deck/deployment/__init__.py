"""
Deployment entry points (HTTP server).
"""
