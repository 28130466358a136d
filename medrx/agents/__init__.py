from medrx.agents.notification_service import app as notification_app
from medrx.agents.subscription_sweeper import app as sweeper_app

__all__ = ["notification_app", "sweeper_app"]
