# app/main.py
import uvicorn

from app.api import create_app
from app.data.database import Base, engine
from app.utils.logging import get_logger, init_logging

# import wszystkich modeli przed create_all
from app.data import models  # noqa: F401

init_logging()
logger = get_logger(__name__)

logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")
Base.metadata.create_all(bind=engine)
logger.info("Database tables ready")

app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
