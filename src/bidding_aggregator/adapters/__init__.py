from .http_client import SourceHttpClient
from .base_adapter import BaseBiddingAdapter
from .dados_abertos_adapter import DadosAbertosComprasAdapter
from .pncp_adapter import PNCPAdapter
from .licitacoes_e_adapter import LicitacoesEAdapter
from .bec_sp_adapter import BecSpAdapter

__all__ = [
    'SourceHttpClient',
    'BaseBiddingAdapter',
    'DadosAbertosComprasAdapter',
    'PNCPAdapter',
    'LicitacoesEAdapter',
    'BecSpAdapter',
]
