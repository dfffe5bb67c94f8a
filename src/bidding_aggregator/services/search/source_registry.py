import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

from ...config.settings import AggregatorConfig
from ...exceptions import ConfigurationError
from ...interfaces.procurement_data_source import SourceDescriptor, SourceKind, SourceStatus

logger = logging.getLogger(__name__)

ALL_SOURCES = 'all'

# Ordem da tabela = ordem de resolução de 'all' e de detecção por URL
SOURCES = (
    SourceDescriptor(
        key='dados-abertos-compras',
        name='Dados Abertos Compras.gov.br',
        kind=SourceKind.API,
        status=SourceStatus.ACTIVE,
        url='http://compras.dados.gov.br/licitacoes/v1/licitacoes.json',
        detail_url_pattern='http://compras.dados.gov.br/licitacoes/doc/licitacao/{identifier}.json',
        host_patterns=('compras.dados.gov.br', 'gov.br/compras'),
        description='API oficial de dados abertos de compras do Governo Federal',
    ),
    SourceDescriptor(
        key='pncp',
        name='PNCP (Portal Nacional de Contratações Públicas)',
        kind=SourceKind.API,
        status=SourceStatus.EXPERIMENTAL,
        url='https://pncp.gov.br/api/consulta/v1/contratacoes/publicacao',
        detail_url_pattern='https://pncp.gov.br/api/consulta/v1/orgaos/{cnpj}/compras/{ano}/{sequencial}',
        host_patterns=('pncp.gov.br',),
        description='API de consulta do PNCP (Lei 14.133/2021)',
    ),
    SourceDescriptor(
        key='comprasnet-scraping-legacy',
        name='ComprasNet (portal legado)',
        kind=SourceKind.SCRAPING,
        status=SourceStatus.REQUIRES_CAPTCHA,
        url='https://cnetmobile.estaleiro.serpro.gov.br/comprasnet-web/public/compras',
        host_patterns=('comprasnet.gov.br', 'cnetmobile.estaleiro.serpro.gov.br'),
        description='Consulta pública do ComprasNet, protegida por captcha',
    ),
    SourceDescriptor(
        key='licitacoes-e',
        name='Licitações-e (Banco do Brasil)',
        kind=SourceKind.SCRAPING,
        status=SourceStatus.FRAGILE,
        url='https://www.licitacoes-e.com.br/aop/pesquisar-licitacao.aop',
        host_patterns=('licitacoes-e.com.br',),
        description='Pesquisa de licitações do Banco do Brasil (HTML)',
    ),
    SourceDescriptor(
        key='bec-sp',
        name='BEC/SP (Bolsa Eletrônica de Compras)',
        kind=SourceKind.SCRAPING,
        status=SourceStatus.VERY_FRAGILE,
        url='https://www.bec.sp.gov.br/BECSP/Home/GetOCs',
        detail_url_pattern='https://www.bec.sp.gov.br/BECSP/Pregao/DetalheOC.aspx?chave={identifier}',
        host_patterns=('bec.sp.gov.br', 'bec.fazenda.sp.gov.br'),
        description='Ofertas de compra da BEC do Estado de São Paulo',
    ),
)

_FRAGILE_STATUSES = (SourceStatus.EXPERIMENTAL, SourceStatus.FRAGILE, SourceStatus.VERY_FRAGILE)


@dataclass
class SourceResolution:
    """Fontes a consultar numa busca e o motivo das que ficaram de fora"""
    sources: List[SourceDescriptor] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)


class SourceRegistry:
    """Registro estático das fontes de licitação. Não há API de mutação."""

    def __init__(self, descriptors: Sequence[SourceDescriptor] = SOURCES):
        self._descriptors: Dict[str, SourceDescriptor] = {d.key: d for d in descriptors}

    def get(self, key: str) -> Optional[SourceDescriptor]:
        return self._descriptors.get(key)

    def list_all(self) -> List[SourceDescriptor]:
        return list(self._descriptors.values())

    def keys(self) -> List[str]:
        return list(self._descriptors)

    def gate(self, descriptor: SourceDescriptor, config: AggregatorConfig) -> Optional[str]:
        """
        Motivo pelo qual a fonte não pode ser consultada, ou None se liberada.

        disabled e requires_captcha bloqueiam sempre; experimental, fragile e
        very_fragile só quando a configuração não permite fontes frágeis.
        """
        if descriptor.status == SourceStatus.DISABLED or descriptor.key in config.disabled_sources:
            return 'desabilitada'
        if descriptor.status == SourceStatus.REQUIRES_CAPTCHA:
            return 'requer captcha'
        if descriptor.status in _FRAGILE_STATUSES and not config.allow_fragile_sources:
            return 'frágil/experimental não permitido'
        if not descriptor.url:
            return 'endpoint não configurado'
        return None

    def require_dispatchable(self, key: str, config: AggregatorConfig) -> SourceDescriptor:
        """Fonte pedida explicitamente (detalhe/reconciliação): erro se desconhecida ou bloqueada"""
        descriptor = self.get(key)
        if descriptor is None:
            raise ConfigurationError(key, f"Fonte inválida: {key}")

        reason = self.gate(descriptor, config)
        if reason:
            raise ConfigurationError(key, f"Fonte {descriptor.name} indisponível: {reason}.")
        return descriptor

    def resolve(self, selector: Union[str, Iterable[str], None], config: AggregatorConfig) -> SourceResolution:
        """Converte o seletor ('all' ou lista de chaves) na lista de fontes a consultar"""
        if selector is None or selector == ALL_SOURCES:
            requested = self.keys()
        elif isinstance(selector, str):
            requested = [selector]
        else:
            # Lista explícita vale literalmente; vazia não seleciona nada
            requested = list(selector)
            if ALL_SOURCES in requested:
                requested = self.keys()

        resolution = SourceResolution()
        seen = set()
        for key in requested:
            if key in seen:
                continue
            seen.add(key)

            descriptor = self.get(key)
            if descriptor is None:
                logger.warning(f"⚠️ Fonte inválida solicitada: {key}")
                resolution.invalid.append(f"Fonte inválida: {key}")
                continue

            reason = self.gate(descriptor, config)
            if reason:
                logger.info(f"⏭️ Pulando fonte {descriptor.name}: {reason}")
                resolution.skipped.append(f"{descriptor.name} (Motivo: {reason})")
                continue

            resolution.sources.append(descriptor)

        return resolution

    def detect_from_url(self, url: Optional[str]) -> Optional[SourceDescriptor]:
        """Recupera a fonte de um registro sem tag a partir do host da URL de origem"""
        if not url:
            return None

        lowered = url.lower()
        for descriptor in self._descriptors.values():
            if descriptor.status in (SourceStatus.DISABLED, SourceStatus.REQUIRES_CAPTCHA):
                continue
            if any(pattern in lowered for pattern in descriptor.host_patterns):
                logger.debug(f"🔍 Fonte detectada pela URL: {descriptor.key}")
                return descriptor
        return None
