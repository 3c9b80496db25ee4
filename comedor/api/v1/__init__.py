"""
Rutas v1
"""
