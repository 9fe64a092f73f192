# python -m postcardgen
import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("postcardgen")
logging.basicConfig(level=logging.INFO)


def main() -> None:
    from postcardgen.api import create_app

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8080"))
    app = create_app()
    logger.info("starting postcard api on %s:%s (response mode: %s)", host, port, app.state.response_mode)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
