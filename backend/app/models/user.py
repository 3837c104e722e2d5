"""
Modèle SQLAlchemy pour les utilisateurs (administrateurs, opérateurs, tactiques).
L'authentification et la résolution des rôles sont gérées hors de ce service.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, String, Uuid, func

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False)  # admin, operador, tatico
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
