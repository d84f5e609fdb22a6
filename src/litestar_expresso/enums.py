"""Status taxonomy for shipments, B2B shipments and B2B volumes."""

from __future__ import annotations

from enum import StrEnum


class ShipmentStatus(StrEnum):
    """Lifecycle of a regular (non-B2B) shipment."""

    PENDING_LABEL = "PENDING_LABEL"
    LABEL_GENERATED = "LABEL_GENERATED"
    PENDING_DOCUMENT = "PENDING_DOCUMENT"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    COLETA_ACEITA = "COLETA_ACEITA"
    COLETA_FINALIZADA = "COLETA_FINALIZADA"
    EM_TRANSITO = "EM_TRANSITO"
    TENTATIVA_ENTREGA = "TENTATIVA_ENTREGA"
    ENDERECO_INCORRETO = "ENDERECO_INCORRETO"
    AGUARDANDO_DESTINATARIO = "AGUARDANDO_DESTINATARIO"
    ENTREGA_FINALIZADA = "ENTREGA_FINALIZADA"


class B2BShipmentStatus(StrEnum):
    """Stored status of a B2B express shipment."""

    PENDENTE = "PENDENTE"
    ACEITA = "ACEITA"
    B2B_COLETA_FINALIZADA = "B2B_COLETA_FINALIZADA"
    B2B_ENTREGA_ACEITA = "B2B_ENTREGA_ACEITA"
    ENTREGUE = "ENTREGUE"
    CONCLUIDO = "CONCLUIDO"


class VolumeStatus(StrEnum):
    """Per-volume status inside a B2B shipment."""

    # collection phase
    AGUARDANDO_ACEITE_COLETA = "AGUARDANDO_ACEITE_COLETA"
    COLETA_ACEITA = "COLETA_ACEITA"
    COLETADO = "COLETADO"
    # delivery phase
    EM_TRIAGEM = "EM_TRIAGEM"
    AGUARDANDO_ACEITE_EXPEDICAO = "AGUARDANDO_ACEITE_EXPEDICAO"
    EXPEDIDO = "EXPEDIDO"
    EM_ROTA = "EM_ROTA"
    ENTREGUE = "ENTREGUE"
    CONCLUIDO = "CONCLUIDO"
    DEVOLUCAO = "DEVOLUCAO"


class ShipmentType(StrEnum):
    """Declared B2B shipment type tag."""

    B2B_COLETA = "B2B-0"
    B2B_ENTREGA = "B2B-2"


class Phase(StrEnum):
    """Which B2B finalization a shipment is eligible for."""

    COLETA = "coleta"
    ENTREGA = "entrega"
    NONE = "none"


class OccurrenceType(StrEnum):
    """Driver-registered occurrences, each bound to one target status."""

    COLETA_REALIZADA = "coleta_realizada"
    EM_TRANSITO = "em_transito"
    TENTATIVA_ENTREGA = "tentativa_entrega"
    ENTREGUE = "entregue"


class EvidenceKind(StrEnum):
    """Occurrence row types written for uploaded evidence."""

    FOTO = "foto"
    ASSINATURA = "assinatura"
    COLETA_FINALIZADA = "coleta_finalizada"
    ENTREGA_FINALIZADA = "entrega_finalizada"


class SubjectKind(StrEnum):
    """Kind of record a history entry or occurrence refers to."""

    SHIPMENT = "shipment"
    B2B_SHIPMENT = "b2b_shipment"
    B2B_VOLUME = "b2b_volume"


class ActorRole(StrEnum):
    ANONYMOUS = "anonymous"
    CUSTOMER = "customer"
    DRIVER = "motorista"
    B2B_CLIENT = "b2b_client"
    CD = "cd"
    ADMIN = "admin"


OCCURRENCE_TARGETS: dict[OccurrenceType, ShipmentStatus] = {
    OccurrenceType.COLETA_REALIZADA: ShipmentStatus.COLETA_FINALIZADA,
    OccurrenceType.EM_TRANSITO: ShipmentStatus.EM_TRANSITO,
    OccurrenceType.TENTATIVA_ENTREGA: ShipmentStatus.TENTATIVA_ENTREGA,
    OccurrenceType.ENTREGUE: ShipmentStatus.ENTREGA_FINALIZADA,
}

OCCURRENCE_LABELS: dict[OccurrenceType, str] = {
    OccurrenceType.COLETA_REALIZADA: "Coleta Realizada",
    OccurrenceType.EM_TRANSITO: "Em Trânsito",
    OccurrenceType.TENTATIVA_ENTREGA: "Insucesso na Entrega",
    OccurrenceType.ENTREGUE: "Entregue ao Destinatário com Sucesso",
}

# Occurrence types whose registration needs a free-text reason.
OBSERVATIONS_REQUIRED: frozenset[OccurrenceType] = frozenset(
    {OccurrenceType.TENTATIVA_ENTREGA}
)

# Human-readable (pt-BR) status labels
STATUS_LABELS: dict[str, str] = {
    ShipmentStatus.PENDING_LABEL: "Aguardando Etiqueta",
    ShipmentStatus.LABEL_GENERATED: "Etiqueta Gerada",
    ShipmentStatus.PENDING_DOCUMENT: "Aguardando Documento",
    ShipmentStatus.PENDING_PAYMENT: "Aguardando Pagamento",
    ShipmentStatus.PAYMENT_CONFIRMED: "Pagamento Confirmado",
    ShipmentStatus.COLETA_ACEITA: "Coleta Aceita",
    ShipmentStatus.COLETA_FINALIZADA: "Coleta Realizada",
    ShipmentStatus.EM_TRANSITO: "Em Trânsito",
    ShipmentStatus.TENTATIVA_ENTREGA: "Tentativa de Entrega",
    ShipmentStatus.ENDERECO_INCORRETO: "Endereço Incorreto",
    ShipmentStatus.AGUARDANDO_DESTINATARIO: "Aguardando Destinatário",
    ShipmentStatus.ENTREGA_FINALIZADA: "Entrega Finalizada",
    B2BShipmentStatus.PENDENTE: "Aguardando Coleta",
    B2BShipmentStatus.ACEITA: "Coleta Aceita",
    B2BShipmentStatus.B2B_COLETA_FINALIZADA: "Em Trânsito",
    B2BShipmentStatus.B2B_ENTREGA_ACEITA: "Saiu para Entrega",
    B2BShipmentStatus.ENTREGUE: "Entregue",
    B2BShipmentStatus.CONCLUIDO: "Concluído",
    VolumeStatus.AGUARDANDO_ACEITE_COLETA: "Aguardando Aceite Coleta",
    VolumeStatus.COLETADO: "Coletado",
    VolumeStatus.EM_TRIAGEM: "Em Triagem",
    VolumeStatus.AGUARDANDO_ACEITE_EXPEDICAO: "Aguardando Aceite Expedição",
    VolumeStatus.EXPEDIDO: "Expedido",
    VolumeStatus.EM_ROTA: "Em Rota",
    VolumeStatus.DEVOLUCAO: "Devolução",
}


def status_label(status: str) -> str:
    """Display label for any shipment, B2B or volume status.

    Unknown statuses are shown with underscores replaced by spaces and each
    word capitalized.
    """
    label = STATUS_LABELS.get(status)
    if label is not None:
        return label
    return status.replace("_", " ").title()
