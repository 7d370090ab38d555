from backend.models.user import User
from backend.models.upload import Upload
from backend.models.forecast import Forecast
from backend.models.menu_plan import MenuPlan
from backend.models.pickup import Pickup
from backend.models.impact_entry import ImpactEntry

__all__ = [
    "User",
    "Upload",
    "Forecast",
    "MenuPlan",
    "Pickup",
    "ImpactEntry",
]
