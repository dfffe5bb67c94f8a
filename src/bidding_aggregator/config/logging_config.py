import logging
import os
from pathlib import Path
from typing import Optional


def setup_logging(log_file: Optional[str] = 'logs/bidding_aggregator.log'):
    handlers = [logging.StreamHandler()]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )

    # urllib3 loga cada retry de conexão em WARNING
    logging.getLogger('urllib3').setLevel(logging.ERROR)
