"""
Tareas programadas
"""
