from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    # Base de datos
    database_url: str = "duckdb://./data/comedor.duckdb"

    # JWT emitido por el proveedor de identidad externo
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: str = "authenticated"
    admin_roles: List[str] = ["ADMIN"]

    # Calendario civil: UTC-5 fijo, sin horario de verano
    utc_offset_hours: int = -5

    # Proteína por defecto para menús nuevos
    default_protein_type_id: str = "99dc22df-fdb4-4000-8e5e-30caab647b1d"
    default_protein_name: str = "Proteína del día"

    # Cierre diario
    day_close_enabled: bool = False
    day_close_time: str = "22:30"
    day_close_action: str = "cancelled"  # cancelled | served

    # Paginación
    page_size_max: int = 200

    # Logging
    log_level: str = "INFO"

    # API
    api_title: str = "Comedor API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:3000"]

    # Modo desarrollo
    debug: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


# Instancia global de configuración
settings = Settings()
