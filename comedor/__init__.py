"""
Comedor - servicio backend del comedor de empleados
Menú diario, opciones de proteína y acompañamientos, y reservas de almuerzo.

Tecnología: FastAPI + DuckDB + JWT
"""

__version__ = "1.0.0"
