import uvicorn
import logging
import os
from dotenv import load_dotenv
from database import init_db
from database.session import DATABASE_URL, engine
from server.api import app

# Load environment variables from .env file
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def check_settings():
    """Warn about settings that leave the bid entry stations open."""
    if os.getenv("SECRET_KEY", "change-me-in-production") == "change-me-in-production":
        logger.warning("SECRET_KEY is not set; tokens are signed with the built-in default")
    if not os.getenv("ADMIN_PASSWORD"):
        logger.warning("ADMIN_PASSWORD is not set; /auth issues a token to anyone")


if __name__ == "__main__":
    check_settings()
    init_db()
    logger.info(f"Database initialized ({engine.url.get_backend_name()})")
    if DATABASE_URL.startswith("sqlite"):
        logger.info("SQLite database: run a single server for every bid entry station")

    # Hosted deployments set PORT; at the venue the defaults serve the local network
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host=host, port=port)
