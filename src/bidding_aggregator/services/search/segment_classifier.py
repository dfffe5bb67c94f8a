import logging
from typing import Iterable, List, Optional, Sequence

from ...interfaces.procurement_data_source import NormalizedBiddingRecord, SegmentDescriptor

logger = logging.getLogger(__name__)

SEGMENTS = (
    SegmentDescriptor('tecnologia', 'Tecnologia da Informação', (
        'tecnologia', 'software', 'hardware', 'computador', 'servidor', 'rede', 'ti', 'suporte',
        'sistema', 'informática', 'digital', 'cloud', 'desenvolvimento', 'segurança da informação',
    )),
    SegmentDescriptor('construcao', 'Construção Civil', (
        'construção', 'obra', 'engenharia', 'reforma', 'infraestrutura', 'pavimentação', 'edificação',
        'projeto', 'civil', 'elétrica', 'hidráulica', 'manutenção predial', 'arquitetura', 'terraplenagem',
    )),
    SegmentDescriptor('saude', 'Saúde', (
        'saúde', 'hospital', 'médico', 'medicamento', 'enfermagem', 'equipamento hospitalar',
        'equipamento médico', 'ambulância', 'laboratório', 'clínico', 'insumo hospitalar', 'ppi',
        'odontológico',
    )),
    SegmentDescriptor('alimentacao', 'Alimentação', (
        'alimento', 'merenda', 'refeição', 'restaurante', 'comida', 'alimentício', 'gênero alimentício',
        'nutrição', 'hortifruti', 'panificação', 'catering', 'cozinha industrial',
    )),
    SegmentDescriptor('educacao', 'Educação', (
        'educação', 'escola', 'ensino', 'professor', 'didático', 'material escolar', 'livro', 'uniforme',
        'capacitação', 'treinamento', 'curso', 'plataforma educacional',
    )),
    SegmentDescriptor('servicos', 'Serviços Gerais', (
        'serviço', 'limpeza', 'vigilância', 'segurança', 'manutenção', 'conservação', 'portaria',
        'jardinagem', 'copeiragem', 'terceirização', 'consultoria', 'auditoria', 'assessoria', 'gráfico',
        'publicidade',
    )),
    SegmentDescriptor('transporte', 'Transporte e Logística', (
        'transporte', 'veículo', 'ônibus', 'caminhão', 'combustível', 'frete', 'logística',
        'locação de veículos', 'passagem aérea', 'manutenção de frota', 'armazenagem', 'mudança',
    )),
    SegmentDescriptor('mobiliario', 'Mobiliário e Equipamentos', (
        'mobiliário', 'móvel', 'cadeira', 'mesa', 'armário', 'estante', 'prateleira',
        'equipamento de escritório', 'eletrodoméstico', 'ar condicionado',
    )),
)


class SegmentClassifier:
    """
    Classifica licitações em segmentos de mercado por palavras-chave.

    A busca é por substring (sem limite de palavra), então palavras curtas
    como "ti" também casam dentro de outras palavras.
    """

    def __init__(self, segments: Sequence[SegmentDescriptor] = SEGMENTS):
        self._segments = {segment.key: segment for segment in segments}

    def list_segments(self) -> List[SegmentDescriptor]:
        return list(self._segments.values())

    def get(self, segment_key: str) -> Optional[SegmentDescriptor]:
        return self._segments.get(segment_key)

    def is_filterable(self, segment_key: Optional[str]) -> bool:
        """False quando o filtro deve ser ignorado (sem segmento, desconhecido ou sem palavras-chave)"""
        if not segment_key:
            return False

        segment = self._segments.get(segment_key)
        if segment is None:
            logger.warning(f"⚠️ Segmento desconhecido '{segment_key}', resultados não serão filtrados")
            return False
        if not segment.keywords:
            logger.debug(f"Segmento '{segment_key}' sem palavras-chave, resultados não serão filtrados")
            return False
        return True

    def matches(self, text: Optional[str], segment_key: str) -> bool:
        segment = self._segments.get(segment_key)
        if segment is None or not segment.keywords:
            return True

        lowered = (text or '').strip().lower()
        if not lowered:
            return False

        return any(keyword.lower() in lowered for keyword in segment.keywords)

    def matches_record(self, record: NormalizedBiddingRecord, segment_key: str) -> bool:
        text = f"{record.title or ''} {record.description or ''}"
        return self.matches(text, segment_key)

    def filter_records(self, records: Iterable[NormalizedBiddingRecord],
                       segment_key: Optional[str]) -> List[NormalizedBiddingRecord]:
        records = list(records)
        if not self.is_filterable(segment_key):
            return records

        filtered = [record for record in records if self.matches_record(record, segment_key)]
        logger.info(f"🎯 Filtro de segmento '{segment_key}': {len(filtered)}/{len(records)} licitações")
        return filtered
