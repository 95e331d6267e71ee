"""
API routers for scorelab
"""
