"""
Carregador de variáveis de ambiente do agregador
"""

import os
import logging
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_environment(config_file: Optional[Path] = None) -> bool:
    """Carrega as variáveis de ambiente do arquivo config.env (raiz do projeto por padrão)"""
    if config_file is None:
        config_file = Path.cwd() / "config.env"

    if not config_file.exists():
        logger.debug(f"⚠️ Arquivo config.env não encontrado em: {config_file}")
        return False

    load_dotenv(config_file)
    logger.info(f"✅ Variáveis de ambiente carregadas de: {config_file}")
    logger.info(f"  - REDIS_URL: {'✅ Configurado' if os.getenv('REDIS_URL') else '❌ Não configurado'}")
    logger.info(f"  - DATABASE_URL: {'✅ Configurado' if os.getenv('DATABASE_URL') else '❌ Não configurado'}")
    return True
