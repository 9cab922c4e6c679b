"""
Runtime configuration.
All settings come from environment variables (optionally via a .env file).
"""

import os
from dotenv import load_dotenv

load_dotenv()

_DEFAULT_ORDERDESK_URL = "https://orderdesk-single-order-ship-65ffd8ceba36.herokuapp.com/"

# Downstream single-order-ship endpoint; one POST per shipment
ORDERDESK_URL: str = os.getenv("ORDERDESK_URL") or _DEFAULT_ORDERDESK_URL

# Seconds to wait on OrderDesk before treating the call as a transport failure
ORDERDESK_TIMEOUT: float = float(os.getenv("ORDERDESK_TIMEOUT", "30"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

PORT: int = int(os.getenv("PORT", "3000"))
