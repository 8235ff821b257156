from mangum import Mangum
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ledger.api import app

app.root_path = "/api"

# No periodic batch on serverless; reads still recompute on demand.
handler = Mangum(app, lifespan="off")
