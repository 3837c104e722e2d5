# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# Sans cet import, les FK comme rounds.assigned_operator_id → users.id échouent
# avec NoReferencedTableError si user.py n'est pas chargé avant round.py.

from app.models.user import User  # noqa: F401  (doit précéder round)
from app.models.client import Client  # noqa: F401
from app.models.checkpoint import Checkpoint  # noqa: F401
from app.models.vehicle import Vehicle  # noqa: F401
from app.models.round_template import RoundTemplate, RoundTemplateClient  # noqa: F401
from app.models.round import Round  # noqa: F401
from app.models.checkpoint_visit import CheckpointVisit  # noqa: F401
from app.models.incident import Incident  # noqa: F401
