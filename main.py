# main.py
import logging

import config
from firebase_client import init_firebase
from web import start_web


def main():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    init_firebase()
    logging.getLogger(__name__).info("Barttle starting on %s:%s", config.HOST, config.PORT)
    start_web(host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
