import logging
import threading
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Optional, Tuple

import requests

from ..config.settings import AggregatorConfig
from ..exceptions import FetchCancelledError, ShapeError, TransportError

logger = logging.getLogger(__name__)

# Evento de cancelamento da busca agregada em andamento na thread atual
_cancel_event: ContextVar[Optional[threading.Event]] = ContextVar('bidding_fetch_cancel', default=None)

API_HEADERS = {
    'Accept': 'application/json',
    'Accept-Language': 'pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7',
}

BROWSER_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7',
    'Connection': 'keep-alive',
    'Upgrade-Insecure-Requests': '1',
}


@contextmanager
def cancellation_scope(event: Optional[threading.Event]):
    """Associa o evento de cancelamento às requisições feitas dentro do bloco"""
    token = _cancel_event.set(event)
    try:
        yield event
    finally:
        _cancel_event.reset(token)


class SourceHttpClient:
    """
    Cliente HTTP de uma fonte: sessão requests com timeout (connect, read),
    verificação TLS configurável e retry limitado com backoff linear.

    Erros de conexão, timeouts, 5xx e 429 são repetidos; os demais status
    não-2xx falham na hora com TransportError. Com um evento de
    cancelamento ativo (``cancel_event`` ou ``cancellation_scope``), o
    laço para antes de cada tentativa e interrompe a espera do backoff.
    """

    def __init__(self, service_name: str, config: AggregatorConfig, browser: bool = False,
                 max_attempts: Optional[int] = None, session: Optional[requests.Session] = None):
        self.service_name = service_name
        self.config = config
        self.max_attempts = max(1, max_attempts or config.http_max_attempts)
        self.retry_delay = config.http_retry_delay

        self.session = session or requests.Session()
        self.session.headers.update(BROWSER_HEADERS if browser else API_HEADERS)
        self.session.headers['User-Agent'] = config.browser_user_agent if browser else config.user_agent
        self.session.verify = config.verify_ssl

    def request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None,
                data: Optional[Dict[str, Any]] = None,
                headers: Optional[Dict[str, str]] = None,
                cancel_event: Optional[threading.Event] = None) -> requests.Response:
        cancel_event = cancel_event or _cancel_event.get()
        last_error: Optional[TransportError] = None

        for attempt in range(self.max_attempts):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"🛑 {self.service_name}: busca cancelada antes da tentativa {attempt + 1}")
                raise FetchCancelledError(self.service_name)

            try:
                logger.debug(f"🌐 {method} {url} (tentativa {attempt + 1}/{self.max_attempts}) params={params}")
                response = self.session.request(
                    method,
                    url,
                    params=params,
                    data=data,
                    headers=headers,
                    timeout=self.config.request_timeout
                )
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                last_error = TransportError(self.service_name, f"Erro de conexão: {e}", retryable=True)
            except requests.exceptions.RequestException as e:
                raise TransportError(self.service_name, f"Requisição inválida: {e}") from e
            else:
                status = response.status_code
                if 200 <= status < 300:
                    return response

                retryable = status >= 500 or status == 429
                last_error = TransportError(
                    self.service_name, f"HTTP {status}", status_code=status, retryable=retryable
                )
                if not retryable:
                    raise last_error

            logger.warning(f"⚠️ {self.service_name}: erro na tentativa {attempt + 1}: {last_error.message}")
            if attempt < self.max_attempts - 1:
                delay = self.retry_delay * (attempt + 1)
                if cancel_event is None:
                    time.sleep(delay)
                elif cancel_event.wait(delay):
                    logger.warning(f"🛑 {self.service_name}: busca cancelada durante o backoff")
                    raise FetchCancelledError(self.service_name)

        logger.error(f"❌ {self.service_name}: falha após {self.max_attempts} tentativas")
        raise last_error

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> requests.Response:
        return self.request('GET', url, params=params, **kwargs)

    def post(self, url: str, data: Optional[Dict[str, Any]] = None, **kwargs) -> requests.Response:
        return self.request('POST', url, data=data, **kwargs)

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Tuple[requests.Response, Any]:
        """GET + decodificação JSON; corpo vazio (ex.: HTTP 204) resulta em None"""
        response = self.get(url, params=params, **kwargs)
        if response.status_code == 204 or not response.content:
            return response, None

        try:
            return response, response.json()
        except ValueError as e:
            raise ShapeError(
                self.service_name,
                f"Resposta não é JSON válido de {self.service_name}.",
                context={'url': url, 'params': params, 'content_type': response.headers.get('Content-Type')}
            ) from e

    def close(self):
        self.session.close()
