"""
Warehouse connection and demo schema
"""
