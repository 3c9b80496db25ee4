"""
Núcleo: reloj, excepciones, base de datos, seguridad y manejo de errores
"""
