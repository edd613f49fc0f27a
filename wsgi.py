import os
from dotenv import load_dotenv

load_dotenv()

from biblioteca import create_app  # noqa: E402

config = os.getenv("FLASK_CONFIG", "production")

app = create_app(config)
celery_app = app.extensions["celery"]
