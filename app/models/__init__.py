# Carrega app.db.base para registrar todas as tabelas no metadata
import app.db.base  # noqa: F401

__all__: list[str] = []
