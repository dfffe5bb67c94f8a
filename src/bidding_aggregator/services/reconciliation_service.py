"""
Reconciliação de licitações armazenadas com os dados atuais da fonte
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..config.settings import AggregatorConfig
from ..exceptions import ConcurrencyError, PersistenceError
from ..interfaces.bidding_store import BiddingStore
from ..interfaces.procurement_data_source import DetailResult, NormalizedBiddingRecord
from ..utils.normalizers import parse_datetime
from .search.source_registry import SourceRegistry

logger = logging.getLogger(__name__)

IGNORED_FIELDS = ('source', 'source_name')
DECIMAL_FIELDS = ('estimated_value',)


@dataclass
class ReconciliationChangeset:
    changes: Dict[str, Any]
    last_checked_at: datetime

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def as_update(self) -> Dict[str, Any]:
        """Atualização parcial única: campos alterados + last_checked_at"""
        update = dict(self.changes)
        update['last_checked_at'] = self.last_checked_at
        return update


@dataclass
class ReconciliationResult:
    success: bool
    message: str
    updated_fields: List[str] = field(default_factory=list)
    changeset: Optional[ReconciliationChangeset] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'message': self.message,
            'updated_fields': list(self.updated_fields),
        }


class ReconciliationService:
    """
    Compara uma licitação armazenada com o detalhe atual da fonte e grava
    apenas os campos que mudaram.
    """

    def __init__(self, registry: SourceRegistry, store: BiddingStore,
                 fetch_detail: Callable[[str, str], DetailResult], config: AggregatorConfig,
                 clock: Callable[[], datetime] = datetime.now):
        self.registry = registry
        self.store = store
        self.fetch_detail = fetch_detail
        self.config = config
        self.clock = clock

    def update_from_source(self, stored_record: Mapping[str, Any]) -> ReconciliationResult:
        """Reconcilia descobrindo fonte (tag ou URL) e identificador a partir do próprio registro"""
        source_key = stored_record.get('source')
        if not source_key:
            descriptor = self.registry.detect_from_url(stored_record.get('url_source'))
            source_key = descriptor.key if descriptor else None

        identifier = stored_record.get('source_identifier') or stored_record.get('url_source')
        return self.reconcile(stored_record, source_key, identifier)

    def reconcile(self, stored_record: Mapping[str, Any], source_key: Optional[str],
                  identifier: Optional[str]) -> ReconciliationResult:
        bidding_id = stored_record.get('id')

        descriptor = self.registry.get(source_key) if source_key else None
        if descriptor is None:
            return self._failure(bidding_id, 'Não é possível atualizar licitação: fonte inválida/não detectada.')

        reason = self.registry.gate(descriptor, self.config)
        if reason:
            return self._failure(bidding_id, f"Não é possível atualizar licitação: fonte {reason}.")

        if not identifier:
            return self._failure(bidding_id, 'URL ou identificador da fonte ausente para atualização.')

        logger.info(f"🔄 Reconciliando licitação {bidding_id} com {descriptor.name} ({identifier})")
        detail = self.fetch_detail(descriptor.key, identifier)
        if not detail.success or detail.data is None:
            return self._failure(bidding_id, f"Falha ao buscar dados atualizados: {detail.message}")

        changeset = self.diff(stored_record, detail.data)

        if changeset.is_empty:
            return self._touch(bidding_id, changeset)

        try:
            self.store.update(
                bidding_id,
                changeset.as_update(),
                expected_updated_at=stored_record.get('updated_at')
            )
        except ConcurrencyError:
            logger.warning(f"⚠️ Licitação {bidding_id} alterada por outro processo, atualização descartada")
            return ReconciliationResult(
                False, 'Licitação alterada por outro processo durante a atualização.', changeset=changeset
            )
        except PersistenceError as e:
            logger.error(f"❌ Erro ao salvar atualizações da licitação {bidding_id}: {e.message}")
            return ReconciliationResult(False, 'Erro ao salvar atualizações no banco de dados.', changeset=changeset)

        updated_fields = list(changeset.changes)
        logger.info(f"✅ Licitação {bidding_id} atualizada: {updated_fields}")
        return ReconciliationResult(True, 'Licitação atualizada com sucesso.', updated_fields, changeset)

    def diff(self, stored_record: Mapping[str, Any], fresh: NormalizedBiddingRecord) -> ReconciliationChangeset:
        changes = {}
        for name, new_value in fresh.to_storage_fields().items():
            if name in IGNORED_FIELDS or name not in stored_record:
                continue
            if self._differs(name, stored_record[name], new_value):
                changes[name] = new_value
        return ReconciliationChangeset(changes=changes, last_checked_at=self.clock())

    def _touch(self, bidding_id: Any, changeset: ReconciliationChangeset) -> ReconciliationResult:
        """Sem mudanças: grava apenas last_checked_at; falha aqui não invalida a consulta"""
        try:
            self.store.update(bidding_id, changeset.as_update())
        except PersistenceError as e:
            logger.warning(f"⚠️ Erro ao atualizar last_checked_at da licitação {bidding_id}: {e.message}")
            return ReconciliationResult(
                True, 'Nenhuma alteração encontrada (erro ao atualizar timestamp).', changeset=changeset
            )

        logger.info(f"ℹ️ Licitação {bidding_id} sem alterações na fonte")
        return ReconciliationResult(True, 'Nenhuma alteração encontrada nos dados.', changeset=changeset)

    def _failure(self, bidding_id: Any, message: str) -> ReconciliationResult:
        logger.warning(f"⚠️ Reconciliação da licitação {bidding_id}: {message}")
        return ReconciliationResult(False, message)

    def _differs(self, name: str, current: Any, new: Any) -> bool:
        if name in DECIMAL_FIELDS:
            return _to_decimal(current) != _to_decimal(new)

        if name in NormalizedBiddingRecord.DATE_FIELDS:
            if _is_blank(current) and _is_blank(new):
                return False
            if _is_blank(current) or _is_blank(new):
                return True
            parsed_current, parsed_new = parse_datetime(current), parse_datetime(new)
            if parsed_current is not None and parsed_new is not None:
                return parsed_current != parsed_new
            return str(current).strip() != str(new).strip()

        if isinstance(current, str) or isinstance(new, str):
            return _text(current) != _text(new)

        return current != new


def _to_decimal(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float('inf'), float('-inf')):
        return None
    return round(number, 2)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any) -> str:
    return '' if value is None else str(value).strip()
